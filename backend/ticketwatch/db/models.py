"""SQLAlchemy database models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Ticket(Base):
    """A citation discovered on the portal."""

    __tablename__ = "tickets"
    __mapper_args__ = {"eager_defaults": True}

    ticket_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    license_plate_number: Mapped[Optional[str]] = mapped_column(String(32))
    license_plate_state: Mapped[Optional[str]] = mapped_column(String(16))

    # From the GPS overlay on the evidence photo; either can be missing
    lat: Mapped[Optional[float]] = mapped_column(Float)
    lng: Mapped[Optional[float]] = mapped_column(Float)
    street_location: Mapped[Optional[str]] = mapped_column(Text)
    ocr_text: Mapped[Optional[str]] = mapped_column(Text)  # Raw overlay text, for debugging

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Ticket {self.ticket_id} at {self.street_location!r}>"


class ScraperState(Base):
    """Singleton cursor for the ticket watcher (row id 1)."""

    __tablename__ = "scraper_state"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    last_checked_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(255), nullable=False)

    # Null until the first ticket id has been resolved and committed
    committed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
