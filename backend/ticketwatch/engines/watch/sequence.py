"""Ticket id sequencing."""

import re

import structlog

logger = structlog.get_logger()

# Optional letter prefix followed by a zero-padded number, e.g. "cab099"
TICKET_ID_PATTERN = re.compile(r"([a-zA-Z]*)([0-9]+)")


def next_ticket_id(ticket_id: str) -> str:
    """
    Return the id that follows ``ticket_id``.

    The numeric part keeps its zero padding and grows when it overflows
    ("099" -> "100"). Ids that don't look like ``prefix + digits`` get a
    literal "1" appended so the watcher keeps moving.
    """
    match = TICKET_ID_PATTERN.fullmatch(ticket_id)
    if not match:
        logger.warning("Unexpected ticket id format", ticket_id=ticket_id)
        return f"{ticket_id}1"

    prefix, numeric = match.groups()
    width = len(numeric)
    return f"{prefix}{int(numeric) + 1:0{width}d}"
