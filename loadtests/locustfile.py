"""Car-wash payments load testing — Locust entry point.

Usage:
    # Web UI:
    locust -f loadtests/locustfile.py

    # Headless (CI mode):
    locust -f loadtests/locustfile.py PaymentsUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest

The target server must share XENDIT_CALLBACK_TOKEN with this process.
"""

import logging
import time

from locust import events

# Import all user classes so Locust discovers them
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.payments import PaymentsUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request."""
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400 and name != "POST /payment/webhook (forged)":
        detail = extract_error_detail(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Log a marker when load test begins."""
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    print()
