"""
Notification delivery interface.
The engine renders the message; the notifier only transports it.
"""

from abc import ABC, abstractmethod

from studyhall.schemas.enums import NotificationCategory


class Notifier(ABC):

    @abstractmethod
    def is_configured(self) -> bool:
        """False when the transport has no credentials; the scheduler then skips sending."""
        pass

    @abstractmethod
    async def send(self, category: NotificationCategory, message: str, recipient: str = "") -> bool:
        """
        Deliver a rendered message.

        Args:
            category: reminder, due, overdue, payment or admin
            message: Fully rendered text
            recipient: Address hint (email) for per-member channels

        Returns:
            True on delivery, False on a handled failure
        """
        pass
