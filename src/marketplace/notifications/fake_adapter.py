"""Fake notification sink — records messages in memory for tests and development."""

from marketplace.notifications.port import NotificationSinkPort


class FakeNotificationSink(NotificationSinkPort):
    def __init__(self):
        self.sent = []
        self.should_succeed = True

    def configure(self, should_succeed: bool = True):
        """Configure the fake sink behavior for testing."""
        self.should_succeed = should_succeed

    def order_delivered(self, order_id: str, user_id: str, fulfillment_type: str, delivered_at: str) -> None:
        if not self.should_succeed:
            raise ConnectionError("Notification sink unavailable")
        self.sent.append(
            {
                "order_id": order_id,
                "user_id": user_id,
                "fulfillment_type": fulfillment_type,
                "delivered_at": delivered_at,
            }
        )
