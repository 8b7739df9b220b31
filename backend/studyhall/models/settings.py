"""
Facility settings, a single row edited by admins.
"""

from sqlalchemy import Column, Integer, JSON

from studyhall.db.base import Base, TimestampMixin


class FacilitySettings(Base, TimestampMixin):
    __tablename__ = "facility_settings"

    id = Column(Integer, primary_key=True, default=1)
    slot_pricing = Column(JSON, nullable=False)
    slot_timings = Column(JSON, nullable=False)
    templates = Column(JSON, nullable=False)
