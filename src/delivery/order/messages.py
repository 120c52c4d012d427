"""Status copy — what the caller is told and what the customer is sent per vendor status.

Lookup table rather than branching so the status change itself stays free of
presentation concerns. Statuses without an entry get the generic reply and
no customer notification.
"""

from dataclasses import dataclass

from delivery.notifier import deliver

NOTIFICATION_TITLE = "Order Update"


@dataclass(frozen=True)
class StatusMessage:
    reply: str
    notification: str | None = None


DEFAULT_MESSAGE = StatusMessage(reply="Order status updated successfully.")

CONFIRMED_MESSAGE = StatusMessage(reply="Driver assigned to leg and order confirmed successfully.")

STATUS_MESSAGES = {
    "driver-accepted": StatusMessage(
        reply="Driver order accepted successfully.",
        notification="Your driver has accepted the order. They are on the way!",
    ),
    "picked": StatusMessage(
        reply="Order picked up successfully.",
        notification="Your order has been picked up and is en route to you!",
    ),
    "delivered": StatusMessage(
        reply="Order delivered successfully & payment marked as paid.",
        notification="Your order has been delivered successfully. Enjoy!",
    ),
}


def message_for(status: str) -> StatusMessage:
    if status == "confirmed":
        return CONFIRMED_MESSAGE
    return STATUS_MESSAGES.get(status, DEFAULT_MESSAGE)


def notify_customer(customer_id: str, order_id: str, status: str) -> bool:
    """Send the status notification, if the status has one.

    Notification failures are logged and never reach the caller.
    """
    message = message_for(status)
    if message.notification is None:
        return False

    return deliver(
        str(customer_id),
        NOTIFICATION_TITLE,
        message.notification,
        data={"orderId": str(order_id), "status": status},
        order_id=str(order_id),
        status=status,
    )
