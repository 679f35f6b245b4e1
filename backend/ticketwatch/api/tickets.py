"""Ticket API endpoints."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketwatch.db import Ticket, get_db
from ticketwatch.engines.feedback.notifier import TicketBroadcaster, get_broadcaster

router = APIRouter()

STREAM_KEEPALIVE_SECONDS = 15.0


class TicketResponse(BaseModel):
    """Ticket response model."""

    model_config = ConfigDict(from_attributes=True)

    ticket_id: str
    license_plate_number: Optional[str] = None
    license_plate_state: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    street_location: Optional[str] = None
    timestamp: datetime


class Coordinates(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


class StreetResponse(BaseModel):
    """Latest known coordinates for a street."""

    street: str
    coordinates: Coordinates


class StreetLastTicketResponse(BaseModel):
    """Most recent ticket on a street."""

    street: Optional[str] = None
    last_ticket_time: datetime
    coordinates: Coordinates


@router.get("", response_model=list[TicketResponse])
async def list_tickets(db: AsyncSession = Depends(get_db)):
    """All tickets, newest first."""
    result = await db.execute(select(Ticket).order_by(Ticket.timestamp.desc()))
    return result.scalars().all()


@router.get("/recent", response_model=list[TicketResponse])
async def recent_tickets(db: AsyncSession = Depends(get_db)):
    """Tickets issued in the last 24 hours."""
    since = datetime.now(timezone.utc) - timedelta(hours=24)
    result = await db.execute(
        select(Ticket)
        .where(Ticket.timestamp >= since)
        .order_by(Ticket.timestamp.desc())
    )
    return result.scalars().all()


@router.get("/streets", response_model=list[StreetResponse])
async def list_streets(db: AsyncSession = Depends(get_db)):
    """Every street with the coordinates of its latest ticket."""
    ranked = (
        select(
            Ticket.street_location.label("street"),
            Ticket.lat,
            Ticket.lng,
            func.row_number()
            .over(
                partition_by=Ticket.street_location,
                order_by=Ticket.timestamp.desc(),
            )
            .label("rn"),
        )
        .where(Ticket.street_location.isnot(None))
        .where(Ticket.street_location != "")
        .subquery()
    )
    result = await db.execute(
        select(ranked.c.street, ranked.c.lat, ranked.c.lng)
        .where(ranked.c.rn == 1)
        .order_by(ranked.c.street)
    )

    return [
        StreetResponse(street=row.street, coordinates=Coordinates(lat=row.lat, lng=row.lng))
        for row in result
    ]


@router.get("/street/{street_name}", response_model=StreetLastTicketResponse)
async def last_ticket_for_street(street_name: str, db: AsyncSession = Depends(get_db)):
    """Most recent ticket whose location mentions ``street_name``."""
    if not street_name.strip():
        raise HTTPException(status_code=400, detail="Street name is required")

    result = await db.execute(
        select(Ticket)
        .where(Ticket.street_location.contains(street_name))
        .order_by(Ticket.timestamp.desc())
        .limit(1)
    )
    ticket = result.scalar_one_or_none()

    if not ticket:
        raise HTTPException(
            status_code=404,
            detail={"error": "No tickets found for this street", "street": street_name},
        )

    return StreetLastTicketResponse(
        street=ticket.street_location,
        last_ticket_time=ticket.timestamp,
        coordinates=Coordinates(lat=ticket.lat, lng=ticket.lng),
    )


@router.get("/stream")
async def stream_tickets(broadcaster: TicketBroadcaster = Depends(get_broadcaster)):
    """Server-sent events for freshly discovered tickets."""

    async def events():
        async with broadcaster.subscribe() as queue:
            yield ": connected\n\n"
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=STREAM_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: ticket\ndata: {json.dumps(event)}\n\n"

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
