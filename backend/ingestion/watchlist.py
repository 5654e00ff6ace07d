from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from app.repositories import ResolutionRepository

from .felt import format_address


def list_active(session: Session) -> set[str]:
    """Return the canonical addresses of every active event; re-read on each call."""

    addresses: set[str] = set()
    for raw_address in ResolutionRepository(session).list_active_addresses():
        try:
            addresses.add(format_address(raw_address))
        except ValueError:
            logger.warning("Ignoring active event with invalid contract address {!r}", raw_address)
    return addresses
