"""FastAPI dependencies for the outbound collaborators (overridden in tests)"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .domain.payments.processor import StripeProcessor
from .services.google_calendar_service import GoogleCalendarService
from .services.notification_service import EmailNotifier


@lru_cache
def get_processor() -> StripeProcessor:
    return StripeProcessor()


@lru_cache
def get_notifier() -> EmailNotifier:
    return EmailNotifier()


def get_calendar(db: Session = Depends(get_db)) -> GoogleCalendarService:
    return GoogleCalendarService(db)
