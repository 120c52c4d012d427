"""Notifier port — abstract interface for customer and driver notifications."""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    """Abstract interface for notification dispatch adapters."""

    @abstractmethod
    def notify(
        self,
        entity_id: str,
        title: str,
        body: str,
        data: dict | None = None,
    ) -> dict:
        """Send a notification to a customer, vendor or driver.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
