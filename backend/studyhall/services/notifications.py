"""
Message rendering and notifier implementations.

Templates use {{key}} placeholders; keys missing from the data are left
verbatim.
"""

import re
from datetime import date
from typing import Any, Mapping, Optional, Sequence

from studyhall.core.logging import get_logger
from studyhall.core.metrics import record_notification
from studyhall.schemas.enums import NotificationCategory
from studyhall.schemas.membership import Membership
from studyhall.services.interfaces.notifier import Notifier

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str, data: Mapping[str, Any]) -> str:
    def replace(match: re.Match) -> str:
        value = data.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(replace, template)


def format_display_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def membership_template_data(membership: Membership, **extra: Any) -> dict[str, Any]:
    """Placeholder values for a membership; keys follow the admin template vocabulary."""
    data = {
        "name": membership.name,
        "email": membership.email,
        "phone": membership.phone,
        "address": membership.address,
        "seatNumber": membership.seat_number,
        "slot": membership.slot,
        "dueDate": format_display_date(membership.due_date),
    }
    data.update(extra)
    return data


class LogNotifier(Notifier):
    """Delivers by writing a structured log line. Always configured."""

    def is_configured(self) -> bool:
        return True

    async def send(self, category: NotificationCategory, message: str, recipient: str = "") -> bool:
        logger.info("notification_delivered", category=category.value, recipient=recipient, text=message)
        return True


class CompositeNotifier(Notifier):
    """
    Fans a message out to several transports (email sender, chat bot).

    Configured when any child is configured; a send succeeds when any
    configured child delivers. A child raising is logged and counted as
    a failed delivery for that child only.
    """

    def __init__(self, notifiers: Sequence[Notifier]):
        self.notifiers = list(notifiers)

    def is_configured(self) -> bool:
        return any(n.is_configured() for n in self.notifiers)

    async def send(self, category: NotificationCategory, message: str, recipient: str = "") -> bool:
        delivered = False
        for notifier in self.notifiers:
            if not notifier.is_configured():
                continue
            try:
                delivered = await notifier.send(category, message, recipient) or delivered
            except Exception as e:
                logger.error(
                    "notifier_child_failed",
                    notifier=type(notifier).__name__,
                    category=category.value,
                    error=str(e),
                )
        return delivered


CHANNELS: dict[str, type[Notifier]] = {
    "log": LogNotifier,
}


def build_notifier(channels: Sequence[str]) -> CompositeNotifier:
    """Composite of the named transports. Unknown names are logged and skipped."""
    children = []
    for name in channels:
        transport = CHANNELS.get(name)
        if transport is None:
            logger.warning("notifier_channel_unknown", channel=name)
            continue
        children.append(transport())
    return CompositeNotifier(children)


async def dispatch(
    notifier: Notifier,
    category: NotificationCategory,
    template: str,
    data: Mapping[str, Any],
    recipient: str = "",
    membership_id: Optional[str] = None,
) -> bool:
    """
    Render and send one notice. Never raises: delivery failures are logged,
    counted and reported as False.
    """
    message = render_template(template, data)
    try:
        sent = await notifier.send(category, message, recipient)
    except Exception as e:
        logger.error(
            "notification_failed",
            category=category.value,
            membership_id=membership_id,
            error=str(e),
        )
        record_notification(category.value, "failed")
        return False

    if sent:
        logger.info("notification_sent", category=category.value, membership_id=membership_id)
        record_notification(category.value, "sent")
    else:
        logger.warning("notification_not_delivered", category=category.value, membership_id=membership_id)
        record_notification(category.value, "failed")
    return sent
