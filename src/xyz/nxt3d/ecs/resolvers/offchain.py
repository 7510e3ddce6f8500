from typing import Sequence, Tuple

from eth_abi import encode

from xyz.nxt3d.ecs.addresses import checksum
from xyz.nxt3d.ecs.ccip.protocol import CallOutcome, Done, Failed, OffchainLookup, Suspend
from xyz.nxt3d.ecs.ccip.request import RemoteReadRequestBuilder, decode_uint_value
from xyz.nxt3d.ecs.errors import encode_custom_error, encode_revert
from xyz.nxt3d.ecs.resolvers.base import (
    CREDENTIAL_INTERFACE_ID,
    ERC165_INTERFACE_ID,
    REMOTE_READ_INTERFACE_ID,
)
from xyz.nxt3d.ecs.wire.names import namehash, parse_address_identifier

EMPTY_RESULT_ERROR = encode_custom_error("EmptyResult()")


class OffchainCredentialResolver:
    """
    Credential resolver whose values live in storage on another chain.

    Every call suspends with a lookup built by the injected request builder:
    address-shaped identifiers probe `mapping[address][coin_type]`, any other
    identifier probes `mapping[namehash(identifier)]`. The verified storage
    word comes back through `credential_callback` as a decimal string.
    """

    def __init__(
        self,
        address: str,
        request_builder: RemoteReadRequestBuilder,
        urls: Sequence[str],
    ) -> None:
        if len(urls) == 0:
            raise ValueError("at least one gateway url is required")
        self.address = checksum(address)
        self.request_builder = request_builder
        self.urls: Tuple[str, ...] = tuple(urls)

    def supports_interface(self, interface_id: bytes) -> bool:
        return interface_id in (
            ERC165_INTERFACE_ID,
            CREDENTIAL_INTERFACE_ID,
            REMOTE_READ_INTERFACE_ID,
        )

    async def credential(self, identifier: bytes, key: str) -> CallOutcome:
        address_identifier = parse_address_identifier(identifier)
        if address_identifier is not None:
            request = self.request_builder.for_address(*address_identifier)
        else:
            request = self.request_builder.for_namespace(namehash(identifier))

        return Suspend(
            OffchainLookup(
                sender=self.address,
                urls=self.urls,
                request=request,
                extra_data=encode(["bytes", "string"], [identifier, key]),
            )
        )

    def credential_callback(
        self, values: Sequence[bytes], extra_data: bytes
    ) -> CallOutcome:
        if len(values) == 0:
            return Failed(EMPTY_RESULT_ERROR)
        try:
            return Done(decode_uint_value(values))
        except ValueError as e:
            return Failed(encode_revert(str(e)))

    def credential_failure(self, error: bytes, extra_data: bytes) -> CallOutcome:
        return Failed(error)
