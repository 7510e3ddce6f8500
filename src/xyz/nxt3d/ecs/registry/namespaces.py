"""Namespace registry with commit-reveal admission.

Registering a namespace takes two steps. The registrant first commits a digest
of (label, owner, resolver, secret), then reveals the plaintext once the
commitment is old enough. An observer who sees a reveal in flight cannot use it:
the digest binds the owner, and a copied commitment is either too young or
already consumed.

Once registered, the owner can rebind or remove the namespace's resolver,
transfer the namespace, or relinquish it. Every mutation goes through the same
ownership and expiration gate. Expiry is only ever compared against the clock;
nothing is swept.
"""

import logging
from dataclasses import dataclass
from time import time
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from xyz.nxt3d.ecs.addresses import checksum, resolver_or_none
from xyz.nxt3d.ecs.errors import ResolutionError
from xyz.nxt3d.ecs.model.events import EventKind, record_event
from xyz.nxt3d.ecs.model.namespaces import Commitment, Namespace
from xyz.nxt3d.ecs.registry.commitments import make_commitment, validate_label
from xyz.nxt3d.ecs.wire.names import namehash

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time())


def _hex(value: bytes) -> str:
    return "0x" + value.hex()


@dataclass(frozen=True)
class NamespaceEntry:
    """Read-only view of a registered namespace."""

    label: str
    namespace_hash: bytes
    owner: str
    resolver: Optional[str]
    expires_at: int
    resolver_updated_at: int
    created_at: int

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at

    @staticmethod
    def from_model(namespace: Namespace) -> "NamespaceEntry":
        return NamespaceEntry(
            label=namespace.label,
            namespace_hash=bytes.fromhex(namespace.namespace_hash[2:]),
            owner=namespace.owner,
            resolver=namespace.resolver,
            expires_at=namespace.expires_at,
            resolver_updated_at=namespace.resolver_updated_at,
            created_at=namespace.created_at,
        )


@dataclass(frozen=True)
class ResolverInfo:
    """Which namespace a resolver serves, and when it was bound."""

    label: str
    resolver_updated_at: int


class NamespaceRegistry:
    """
    Owns namespace entries and pending commitments.

    Args:
        session_maker: Factory for database sessions
        parent_name: Name under which labels are registered, e.g. `ecs.eth`
        min_commitment_age: Seconds a commitment must wait before it can be revealed
        max_commitment_age: Seconds after which a commitment can no longer be revealed
        registration_duration: Default registration length in seconds
        clock: Returns the current unix time in seconds
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        parent_name: str = "ecs.eth",
        min_commitment_age: int = 60,
        max_commitment_age: int = 86400,
        registration_duration: int = 31536000,
        clock: Clock = system_clock,
    ) -> None:
        if min_commitment_age >= max_commitment_age:
            raise ValueError("min_commitment_age must be below max_commitment_age")
        self.session_maker = session_maker
        self.parent_name = parent_name
        self.min_commitment_age = min_commitment_age
        self.max_commitment_age = max_commitment_age
        self.registration_duration = registration_duration
        self.clock = clock

    def namespace_name(self, label: str) -> str:
        return f"{label}.{self.parent_name}" if self.parent_name else label

    def namespace_hash(self, label: str) -> bytes:
        return namehash(self.namespace_name(label))

    async def commit(self, commitment: bytes) -> None:
        """Record a commitment. An identical unexpired commitment is rejected."""
        if len(commitment) != 32:
            raise ValueError("commitment must be exactly 32 bytes")
        now = self.clock()
        async with self.session_maker() as session:
            async with session.begin():
                stored = await session.get(Commitment, _hex(commitment))
                if stored is None:
                    session.add(Commitment(commitment=_hex(commitment), created_at=now))
                elif now - stored.created_at <= self.max_commitment_age:
                    raise ResolutionError.commitment_exists(commitment)
                else:
                    stored.created_at = now
        logger.debug("commitment %s recorded at %d", _hex(commitment), now)

    async def register(
        self,
        label: str,
        owner: str,
        secret: bytes,
        resolver: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> NamespaceEntry:
        """Reveal a commitment and create the namespace entry.

        Raises:
            ResolutionError: namespace_unavailable, commitment_not_found,
                commitment_too_new or commitment_too_old
        """
        validate_label(label)
        owner = checksum(owner)
        resolver = resolver_or_none(resolver)
        duration = self.registration_duration if duration is None else duration
        if duration <= 0:
            raise ValueError("duration must be positive")

        commitment = make_commitment(label, owner, secret, resolver)
        node = self.namespace_hash(label)
        now = self.clock()

        async with self.session_maker() as session:
            async with session.begin():
                existing = await session.get(Namespace, _hex(node))
                if existing is not None and existing.expires_at > now:
                    raise ResolutionError.namespace_unavailable(label)

                stored = await session.get(Commitment, _hex(commitment))
                if stored is None:
                    raise ResolutionError.commitment_not_found(commitment)
                age = now - stored.created_at
                if age < self.min_commitment_age:
                    raise ResolutionError.commitment_too_new(commitment)
                if age > self.max_commitment_age:
                    raise ResolutionError.commitment_too_old(commitment)

                await session.delete(stored)

                if existing is None:
                    existing = Namespace(namespace_hash=_hex(node), label=label)
                    session.add(existing)
                existing.owner = owner
                existing.resolver = resolver
                existing.expires_at = now + duration
                existing.resolver_updated_at = now
                existing.created_at = now

                record_event(
                    session,
                    EventKind.namespace_registered,
                    label,
                    node,
                    now,
                    address=owner,
                )
                if resolver is not None:
                    record_event(
                        session,
                        EventKind.resolver_registered,
                        label,
                        node,
                        now,
                        address=resolver,
                    )
                entry = NamespaceEntry.from_model(existing)

        logger.info("registered %s to %s until %d", label, owner, entry.expires_at)
        return entry

    async def authorize(
        self, session: AsyncSession, label: str, caller: str, now: int
    ) -> Namespace:
        """Load a namespace for mutation by `caller` inside an open transaction.

        Raises:
            ResolutionError: namespace_not_found, expired or unauthorized
        """
        namespace = await session.get(Namespace, _hex(self.namespace_hash(label)))
        if namespace is None:
            raise ResolutionError.namespace_not_found(label)
        if now >= namespace.expires_at:
            raise ResolutionError.expired(label)
        if namespace.owner != checksum(caller):
            raise ResolutionError.unauthorized(label, caller)
        return namespace

    async def require_owner(self, label: str, caller: str) -> NamespaceEntry:
        now = self.clock()
        async with self.session_maker() as session:
            namespace = await self.authorize(session, label, caller, now)
            return NamespaceEntry.from_model(namespace)

    async def set_resolver(
        self, label: str, caller: str, resolver: Optional[str]
    ) -> NamespaceEntry:
        """Rebind a namespace to a new resolver, or remove it with the zero address.

        Removal is logged as `resolver_removed` with the retired resolver's
        address, a rebind as `resolver_registered` with the new one.
        """
        resolver = resolver_or_none(resolver)
        now = self.clock()
        async with self.session_maker() as session:
            async with session.begin():
                namespace = await self.authorize(session, label, caller, now)
                previous = namespace.resolver
                namespace.resolver = resolver
                namespace.resolver_updated_at = now
                node = self.namespace_hash(label)
                if resolver is None:
                    record_event(
                        session,
                        EventKind.resolver_removed,
                        label,
                        node,
                        now,
                        address=previous,
                    )
                else:
                    record_event(
                        session,
                        EventKind.resolver_registered,
                        label,
                        node,
                        now,
                        address=resolver,
                    )
                return NamespaceEntry.from_model(namespace)

    async def transfer(self, label: str, caller: str, new_owner: str) -> NamespaceEntry:
        new_owner = checksum(new_owner)
        now = self.clock()
        async with self.session_maker() as session:
            async with session.begin():
                namespace = await self.authorize(session, label, caller, now)
                namespace.owner = new_owner
                record_event(
                    session,
                    EventKind.namespace_transferred,
                    label,
                    self.namespace_hash(label),
                    now,
                    address=new_owner,
                )
                return NamespaceEntry.from_model(namespace)

    async def relinquish(self, label: str, caller: str) -> None:
        """Give up a namespace. The label becomes available immediately."""
        now = self.clock()
        async with self.session_maker() as session:
            async with session.begin():
                namespace = await self.authorize(session, label, caller, now)
                node = self.namespace_hash(label)
                if namespace.resolver is not None:
                    record_event(
                        session,
                        EventKind.resolver_removed,
                        label,
                        node,
                        now,
                        address=namespace.resolver,
                    )
                record_event(
                    session,
                    EventKind.namespace_relinquished,
                    label,
                    node,
                    now,
                    address=namespace.owner,
                )
                await session.delete(namespace)

    async def get_namespace(self, label: str) -> Optional[NamespaceEntry]:
        async with self.session_maker() as session:
            namespace = await session.get(Namespace, _hex(self.namespace_hash(label)))
            if namespace is None:
                return None
            return NamespaceEntry.from_model(namespace)

    async def is_available(self, label: str) -> bool:
        validate_label(label)
        entry = await self.get_namespace(label)
        return entry is None or entry.is_expired(self.clock())

    async def active_namespaces(self) -> Dict[str, NamespaceEntry]:
        """All unexpired namespaces keyed by label."""
        now = self.clock()
        async with self.session_maker() as session:
            stmt = select(Namespace).where(Namespace.expires_at > now)
            namespaces = (await session.scalars(stmt)).all()
            return {
                namespace.label: NamespaceEntry.from_model(namespace)
                for namespace in namespaces
            }

    async def active_bindings(self) -> Dict[str, str]:
        """Label to resolver for every unexpired namespace with a resolver."""
        return {
            label: entry.resolver
            for label, entry in (await self.active_namespaces()).items()
            if entry.resolver is not None
        }

    async def resolver_info(self, resolver: str) -> Optional[ResolverInfo]:
        """Find the active namespace a resolver is bound to."""
        resolver = checksum(resolver)
        now = self.clock()
        async with self.session_maker() as session:
            stmt = (
                select(Namespace)
                .where(Namespace.resolver == resolver, Namespace.expires_at > now)
                .order_by(Namespace.resolver_updated_at.desc())
            )
            namespace: Optional[Namespace] = (await session.scalars(stmt)).first()
            if namespace is None:
                return None
            return ResolverInfo(
                label=namespace.label,
                resolver_updated_at=namespace.resolver_updated_at,
            )
