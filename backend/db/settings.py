from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from core.dates import utcnow

from .database import Base

SETTINGS_ID = "app-settings"

DEFAULT_SERVICE_START = "06:00"
DEFAULT_SERVICE_END = "23:00"
DEFAULT_CLOSED_MESSAGE = "Queue is currently closed. Please check back during service hours."


class AppSettings(Base):
    """Singleton row holding queue opening hours."""
    __tablename__ = "app_settings"

    id = Column(String, primary_key=True, default=SETTINGS_ID)
    service_start = Column(String(5), nullable=False, default=DEFAULT_SERVICE_START)
    service_end = Column(String(5), nullable=False, default=DEFAULT_SERVICE_END)
    closed_message = Column(Text, nullable=False, default=DEFAULT_CLOSED_MESSAGE)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
