"""BDD tests for the payment lifecycle."""

import asyncio

from payments.gateway.port import Outcome
from payments.polling.poller import poll_until_terminal
from payments.reconciliation.engine import on_outcome
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/payment_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the gateway reports the invoice as "{status}"'))
def _(gateway, checkout, status):
    gateway.set_status(checkout.invoice_id, status)


@when("polling and the webhook report the outcome at the same time")
def _(booking_id, checkout):
    async def _webhook():
        await asyncio.sleep(0)
        return on_outcome("webhook", checkout.invoice_id, Outcome.PAID)

    async def _race():
        return await asyncio.gather(
            poll_until_terminal("booking", booking_id, max_attempts=3, interval_ms=0),
            _webhook(),
        )

    asyncio.run(_race())


@when(parsers.cfparse("polling gives up after {attempts:d} attempts"), target_fixture="poll_outcome")
def _(booking_id, attempts):
    return asyncio.run(poll_until_terminal("booking", booking_id, max_attempts=attempts, interval_ms=0))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('polling reported "{outcome}"'))
def _(poll_outcome, outcome):
    assert poll_outcome.value == outcome
