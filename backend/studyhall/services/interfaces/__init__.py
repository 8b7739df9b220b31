"""
Service interfaces for dependency inversion.
The engine talks to persistence and delivery only through these.
"""

from .stores import MembershipStore, SeatStore, SettingsStore
from .notifier import Notifier

__all__ = ['MembershipStore', 'SeatStore', 'SettingsStore', 'Notifier']
