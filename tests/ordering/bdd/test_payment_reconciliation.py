"""BDD tests for payment reconciliation and the stale-order sweep."""

from ordering.order.expiry import cancel_stale_orders
from ordering.order.order import Order
from ordering.order.reconciliation import handle_notification
from ordering.utils.clock import now_ms
from protean import current_domain
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/payment_reconciliation.feature")


def _current(order):
    return current_domain.repository_for(Order).get(order.id)


@when("the gateway reports a successful payment")
@when("the gateway reports a successful payment again")
def _(outcome, order, notification_for):
    outcome["result"] = handle_notification(notification_for(_current(order)))


@when("the gateway reports a failed payment")
def _(outcome, order, notification_for):
    outcome["result"] = handle_notification(notification_for(_current(order), result_code=1006))


@when("a notification arrives with a forged signature")
def _(outcome, order, notification_for):
    payload = {**notification_for(_current(order)), "signature": "0" * 64}
    outcome["result"] = handle_notification(payload)


@when(parsers.cfparse("{minutes:d} minutes pass and the stale-order sweep runs"))
def _(outcome, minutes):
    outcome["sweep"] = cancel_stale_orders(as_of_ms=now_ms() + minutes * 60 * 1000, timeout_minutes=40)


@then(parsers.cfparse('the last notification was a "{kind}"'))
def _(outcome, kind):
    assert outcome["result"].outcome.value == kind
