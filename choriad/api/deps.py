"""
Dependencies for database sessions and the collaborators of the reconciliation flows.
"""
from typing import Generator
from fastapi import Depends
from sqlalchemy.orm import Session
from choriad.database import SessionLocal
from choriad.integrations import FlutterwaveClient, TransactionVerifier
from choriad.repositories import BookingRepository, SqlAlchemyBookingRepository
from choriad.services.view_invalidation import LoggingViewInvalidator, ViewInvalidator
from choriad.utils import get_logger

logger = get_logger(__name__)

_view_invalidator = LoggingViewInvalidator()


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    Ensures proper session lifecycle management with automatic cleanup.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def get_booking_repository(db: Session = Depends(get_db)) -> BookingRepository:
    return SqlAlchemyBookingRepository(db)


def get_transaction_verifier() -> TransactionVerifier:
    # Reads FLUTTERWAVE_SECRET_KEY / PROVIDER_SETTINGS per request
    return FlutterwaveClient()


def get_view_invalidator() -> ViewInvalidator:
    return _view_invalidator
