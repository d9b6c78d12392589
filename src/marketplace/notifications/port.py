"""Notification port — where delivery confirmations are pushed.

The core only guarantees the order's status is written; broadcasting it to
customers is the sink's concern. Sinks must not block or fail the caller.
"""

from abc import ABC, abstractmethod


class NotificationSinkPort(ABC):
    @abstractmethod
    def order_delivered(self, order_id: str, user_id: str, fulfillment_type: str, delivered_at: str) -> None:
        """Tell the purchaser their order was delivered or collected."""
        ...
