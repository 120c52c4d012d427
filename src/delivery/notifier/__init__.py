"""Notifier — picks the notification adapter and sends through it.

The adapter is named by the ``notifier_adapter`` setting. Sending is best
effort: an adapter that raises, or reports the message as not sent, is
logged and the caller carries on.
"""

import structlog

from delivery.notifier.fake_adapter import FakeNotifier
from delivery.notifier.port import NotifierPort
from delivery.settings import setting

logger = structlog.get_logger(__name__)

ADAPTERS: dict[str, type[NotifierPort]] = {"fake": FakeNotifier}

_active: NotifierPort | None = None


def get_notifier() -> NotifierPort:
    global _active
    if _active is None:
        name = setting("notifier_adapter")
        if name not in ADAPTERS:
            raise ValueError(f"Unknown notifier adapter: {name}")
        _active = ADAPTERS[name]()
    return _active


def reset_notifier() -> None:
    global _active
    _active = None


def deliver(entity_id: str, title: str, body: str, data: dict | None = None, **context) -> bool:
    """Send one notification. Returns True only when the adapter reports it sent."""
    log = logger.bind(entity_id=entity_id, **context)
    try:
        result = get_notifier().notify(entity_id=entity_id, title=title, body=body, data=data)
    except Exception as e:
        log.error("Notification failed", error=str(e))
        return False

    if result.get("status") != "sent":
        log.warning("Notification was not delivered", error=result.get("error"))
        return False
    return True
