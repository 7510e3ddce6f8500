"""Commitment digests and label rules for namespace admission."""

from typing import Optional

from eth_abi import encode
from eth_utils import keccak

from xyz.nxt3d.ecs.addresses import ZERO_ADDRESS, checksum
from xyz.nxt3d.ecs.errors import ResolutionError

MAX_LABEL_LENGTH = 255
FORBIDDEN_LABEL_CHARACTERS = frozenset(".: \t\r\n")


def validate_label(label: str) -> str:
    """Check that a label is a single, non-empty wire-encodable label.

    Raises:
        ResolutionError: invalid_label
    """
    encoded = label.encode("utf-8")
    if len(encoded) == 0 or len(encoded) > MAX_LABEL_LENGTH:
        raise ResolutionError.invalid_label(label)
    if any(character in FORBIDDEN_LABEL_CHARACTERS for character in label):
        raise ResolutionError.invalid_label(label)
    return label


def make_commitment(
    label: str, owner: str, secret: bytes, resolver: Optional[str] = None
) -> bytes:
    """Compute the commitment digest for a future registration.

    The digest covers `abi.encode(string label, address owner, address resolver,
    bytes32 secret)`, so a revealed registration must repeat every field
    exactly. A missing resolver is encoded as the zero address.

    Args:
        label: Namespace label to register
        owner: Address that will own the namespace
        secret: 32 random bytes known only to the registrant
        resolver: Optional initial resolver address

    Returns:
        32-byte keccak digest
    """
    if len(secret) != 32:
        raise ValueError("secret must be exactly 32 bytes")
    return keccak(
        encode(
            ["string", "address", "address", "bytes32"],
            [
                validate_label(label),
                checksum(owner),
                checksum(resolver) if resolver is not None else ZERO_ADDRESS,
                secret,
            ],
        )
    )
