"""Observational event log for registry and resolver changes.

Events have no behavioral effect. They let external observers tell an active
resolver binding from a retired one, and follow credential key updates.
"""

import logging
from enum import Enum
from typing import Optional

from sqlalchemy import Index, Integer, String
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from xyz.nxt3d.ecs.model.base import Base, bytes32hex, str512, timestamp

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    namespace_registered = "namespace_registered"
    namespace_transferred = "namespace_transferred"
    namespace_relinquished = "namespace_relinquished"
    resolver_registered = "resolver_registered"
    resolver_removed = "resolver_removed"
    key_updated = "key_updated"


class RegistryEvent(Base):
    __tablename__ = "registry_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event: Mapped[str] = mapped_column(String(32), nullable=False)
    namespace_hash: Mapped[bytes32hex]
    namespace: Mapped[str512]
    address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    key: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    created_at: Mapped[timestamp]

    __table_args__ = (Index("idx_registry_events_namespace_hash", "namespace_hash"),)


def record_event(
    session: AsyncSession,
    kind: EventKind,
    namespace: str,
    namespace_hash: bytes,
    created_at: int,
    address: Optional[str] = None,
    key: Optional[str] = None,
) -> RegistryEvent:
    """Add an event row to the current transaction and log it."""
    event = RegistryEvent(
        event=kind.value,
        namespace_hash="0x" + namespace_hash.hex(),
        namespace=namespace,
        address=address,
        key=key,
        created_at=created_at,
    )
    session.add(event)
    logger.info(
        "event %s namespace=%s address=%s key=%s", kind.value, namespace, address, key
    )
    return event
