"""API routes module."""

from fastapi import APIRouter

from ticketwatch.api import tickets

router = APIRouter()

router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
