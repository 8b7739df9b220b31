"""
Facility settings edited by admins at runtime: slot prices, slot timings and
notification templates. Placeholders use {{key}} syntax.
"""

from pydantic import BaseModel, Field

from studyhall.schemas.enums import NotificationCategory

DEFAULT_SLOT_PRICING = {
    "Morning": 1000,
    "Afternoon": 1200,
    "Evening": 1500,
    "12Hour": 1800,
    "24Hour": 2500,
}

DEFAULT_SLOT_TIMINGS = {
    "Morning": "6:00 AM - 12:00 PM",
    "Afternoon": "12:00 PM - 6:00 PM",
    "Evening": "6:00 PM - 12:00 AM",
    "12Hour": "6:00 AM - 6:00 PM",
    "24Hour": "24 Hours Access",
}

DEFAULT_TEMPLATES = {
    NotificationCategory.REMINDER.value: (
        "Dear {{name}}, your fee for seat {{seatNumber}} ({{slot}} slot) will be due on "
        "{{dueDate}} ({{daysUntilDue}} days). Amount: {{amount}}."
    ),
    NotificationCategory.DUE.value: (
        "Dear {{name}}, your fee for seat {{seatNumber}} ({{slot}} slot) is due on "
        "{{dueDate}}. Please pay {{amount}} to keep your seat."
    ),
    NotificationCategory.OVERDUE.value: (
        "Dear {{name}}, your membership for seat {{seatNumber}} ({{slot}} slot) has been "
        "terminated because the fee due on {{dueDate}} was not paid."
    ),
    NotificationCategory.PAYMENT.value: (
        "Dear {{name}}, we received {{amount}} for seat {{seatNumber}} ({{slot}} slot). "
        "Valid until {{dueDate}}."
    ),
    NotificationCategory.ADMIN.value: (
        "Reconciliation on {{date}}: {{count}} membership(s) terminated, seats released: {{seats}}."
    ),
}


class FacilitySettings(BaseModel):
    slot_pricing: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_SLOT_PRICING))
    slot_timings: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SLOT_TIMINGS))
    templates: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_TEMPLATES))

    model_config = {"from_attributes": True}

    def template_for(self, category: NotificationCategory) -> str:
        return self.templates.get(category.value) or DEFAULT_TEMPLATES[category.value]

    def price_for(self, slot: str) -> int:
        return self.slot_pricing.get(slot, 0)
