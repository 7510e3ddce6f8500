"""Capability interfaces shared by credential resolvers and the router."""

from functools import reduce
from typing import Protocol, runtime_checkable

from eth_utils import function_signature_to_4byte_selector

from xyz.nxt3d.ecs.ccip.protocol import CallOutcome


def interface_id(*signatures: str) -> bytes:
    """ERC-165 interface id: the XOR of the interface's function selectors."""
    selectors = [function_signature_to_4byte_selector(s) for s in signatures]
    return reduce(
        lambda left, right: bytes(a ^ b for a, b in zip(left, right)), selectors
    )


ERC165_INTERFACE_ID = interface_id("supportsInterface(bytes4)")
EXTENDED_RESOLVER_INTERFACE_ID = interface_id("resolve(bytes,bytes)")
TEXT_INTERFACE_ID = interface_id("text(bytes32,string)")
CREDENTIAL_INTERFACE_ID = interface_id("credential(bytes,string)")
REMOTE_READ_INTERFACE_ID = interface_id(
    "credentialCallback(bytes[],bytes)", "credentialFailure(bytes,bytes)"
)
METADATA_INTERFACE_ID = interface_id("resolverInfo()")


@runtime_checkable
class CredentialResolver(Protocol):
    """Answers `credential(identifier, key)` for the identities it covers.

    `identifier` is the wire-format name left of the marker label, e.g.
    `[7]vitalik[3]eth[0]`. Resolvers that need remote data return a Suspend
    outcome and also implement RemoteReadResolver.
    """

    address: str

    async def credential(self, identifier: bytes, key: str) -> CallOutcome: ...

    def supports_interface(self, interface_id: bytes) -> bool: ...
