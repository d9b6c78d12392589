"""Notification sink abstraction — fire-and-forget delivery confirmations."""

import os

_sink_instance = None


def get_notification_sink():
    """Return the configured notification sink (singleton).

    Uses FakeNotificationSink by default. Configure via the
    NOTIFICATION_SINK environment variable.
    """
    global _sink_instance
    if _sink_instance is None:
        adapter = os.environ.get("NOTIFICATION_SINK", "fake")
        if adapter == "fake":
            from marketplace.notifications.fake_adapter import FakeNotificationSink

            _sink_instance = FakeNotificationSink()
        else:
            raise ValueError(f"Unknown notification sink: {adapter}")
    return _sink_instance


def reset_notification_sink():
    """Reset the sink singleton (useful for testing)."""
    global _sink_instance
    _sink_instance = None
