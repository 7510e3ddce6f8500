import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from xyz.nxt3d.ecs.addresses import checksum
from xyz.nxt3d.ecs.ccip.protocol import CallOutcome, Done
from xyz.nxt3d.ecs.errors import ResolutionError
from xyz.nxt3d.ecs.model.credentials import CredentialRecord
from xyz.nxt3d.ecs.model.events import EventKind, record_event
from xyz.nxt3d.ecs.registry.namespaces import Clock, system_clock
from xyz.nxt3d.ecs.resolvers.base import CREDENTIAL_INTERFACE_ID, ERC165_INTERFACE_ID
from xyz.nxt3d.ecs.wire.names import decode_name, encode_name, namehash

logger = logging.getLogger(__name__)


class LocalCredentialResolver:
    """
    Credential resolver answering from its own stored records.

    Only the controller may write credentials. Reads never suspend; a missing
    record resolves to the empty string.
    """

    def __init__(
        self,
        address: str,
        controller: str,
        session_maker: async_sessionmaker[AsyncSession],
        clock: Clock = system_clock,
    ) -> None:
        self.address = checksum(address)
        self.controller = checksum(controller)
        self.session_maker = session_maker
        self.clock = clock

    def supports_interface(self, interface_id: bytes) -> bool:
        return interface_id in (ERC165_INTERFACE_ID, CREDENTIAL_INTERFACE_ID)

    async def credential(self, identifier: bytes, key: str) -> CallOutcome:
        identifier_hash = "0x" + namehash(identifier).hex()
        async with self.session_maker() as session:
            record: Optional[CredentialRecord] = await session.get(
                CredentialRecord, (self.address, identifier_hash, key)
            )
        return Done(record.value if record is not None else "")

    async def set_credential(
        self, caller: str, identifier: str, key: str, value: str
    ) -> None:
        """Store `value` for the dotted `identifier` name and `key`."""
        if checksum(caller) != self.controller:
            raise ResolutionError.unauthorized(self.address, caller)

        wire = encode_name(identifier)
        node = namehash(wire)
        now = self.clock()
        async with self.session_maker() as session:
            async with session.begin():
                record = await session.get(
                    CredentialRecord, (self.address, "0x" + node.hex(), key)
                )
                if record is None:
                    session.add(
                        CredentialRecord(
                            resolver=self.address,
                            identifier_hash="0x" + node.hex(),
                            key=key,
                            value=value,
                            updated_at=now,
                        )
                    )
                else:
                    record.value = value
                    record.updated_at = now
                record_event(
                    session,
                    EventKind.key_updated,
                    decode_name(wire),
                    node,
                    now,
                    address=self.address,
                    key=key,
                )
