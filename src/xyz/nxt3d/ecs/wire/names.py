"""DNS wire-format name utilities.

Names travel through the resolution entry point in DNS wire format: a sequence
of length-prefixed labels closed by a zero-length label. This module encodes
and decodes that format, computes ENS namehashes, and extracts the identifier
that precedes a marker label in a wildcard query such as
`vitalik.eth.name.name-stars.eth`.
"""

from typing import Iterator, Optional, Tuple

from eth_utils import keccak, to_checksum_address

from xyz.nxt3d.ecs.errors import ResolutionError

ZERO_NODE = b"\x00" * 32

MIN_QUERY_LENGTH = 10
"""Shortest buffer that can hold a marker query."""

NAME_MARKER = b"name"
ADDRESS_MARKER = b"addr"
DEFAULT_SUFFIX = b"eth"


def encode_name(name: str) -> bytes:
    """Encode a dotted name into DNS wire format.

    Args:
        name: Dotted name, e.g. `vitalik.eth`. The empty string is the root.

    Returns:
        Wire-format bytes ending in the zero terminator

    Raises:
        ValueError: If a label is empty or longer than 255 bytes
    """
    if name == "":
        return b"\x00"
    encoded = bytearray()
    for label in name.split("."):
        label_bytes = label.encode("utf-8")
        if len(label_bytes) == 0 or len(label_bytes) > 255:
            raise ValueError(f"Invalid label {label!r} in {name!r}")
        encoded.append(len(label_bytes))
        encoded.extend(label_bytes)
    encoded.append(0)
    return bytes(encoded)


def iter_labels(wire: bytes, offset: int = 0) -> Iterator[Tuple[int, bytes]]:
    """Yield `(offset, label)` pairs up to, but excluding, the terminator.

    Raises:
        ResolutionError: If a length byte is missing or a label overruns the buffer
    """
    while True:
        if offset >= len(wire):
            raise ResolutionError.malformed_encoding(offset)
        length = wire[offset]
        if length == 0:
            return
        end = offset + 1 + length
        if end > len(wire):
            raise ResolutionError.malformed_encoding(offset)
        yield offset, wire[offset + 1 : end]
        offset = end


def decode_name(wire: bytes) -> str:
    """Decode a DNS wire-format name into its dotted form."""
    return ".".join(label.decode("utf-8") for _, label in iter_labels(wire))


def labelhash(label: bytes) -> bytes:
    return keccak(label)


def namehash(name) -> bytes:
    """Compute the ENS namehash of a name.

    Accepts either a dotted string or DNS wire-format bytes. Both forms hash
    each label and fold from the rightmost label towards the leftmost:
    `node = keccak(node || keccak(label))`, starting from 32 zero bytes.
    """
    if isinstance(name, str):
        labels = [label.encode("utf-8") for label in name.split(".")] if name else []
    else:
        labels = [label for _, label in iter_labels(bytes(name))]

    node = ZERO_NODE
    for label in reversed(labels):
        node = keccak(node + labelhash(label))
    return node


def _matches_suffix(wire: bytes, offset: int, suffix: bytes) -> bool:
    end = offset + 1 + len(suffix)
    if end >= len(wire):
        return False
    return (
        wire[offset] == len(suffix)
        and wire[offset + 1 : end] == suffix
        and wire[end] == 0
    )


def extract_identifier(
    wire: bytes, marker: bytes, suffix: bytes = DEFAULT_SUFFIX
) -> bytes:
    """Extract the identifier to the left of a marker label.

    The name must contain `marker`, then exactly one arbitrary label, then
    `suffix` and the terminator. For `[6]domain[3]com[4]name[3]tag[3]eth[0]`
    with marker `name` the result is `[6]domain[3]com[0]`.

    Scanning only moves forward. When a marker label is not followed by the
    expected tail the match is dropped and the scan resumes with the label
    after that marker, so a spurious marker inside the identifier does not
    hide the real one.

    Args:
        wire: DNS wire-format name
        marker: Marker label, e.g. `b"name"` or `b"addr"`
        suffix: Terminal label expected right before the terminator

    Returns:
        Wire-format identifier: every byte before the marker, then `0x00`

    Raises:
        ResolutionError: malformed_encoding for length violations,
            no_match_found when the name is well formed but has no qualifying marker
    """
    if len(wire) < MIN_QUERY_LENGTH:
        raise ResolutionError.malformed_encoding(len(wire))

    offset = 0
    while True:
        if offset >= len(wire):
            raise ResolutionError.malformed_encoding(offset)
        length = wire[offset]
        if length == 0:
            raise ResolutionError.no_match_found(marker)
        next_offset = offset + 1 + length
        if next_offset > len(wire):
            raise ResolutionError.malformed_encoding(offset)

        if wire[offset + 1 : next_offset] == marker:
            if next_offset >= len(wire):
                raise ResolutionError.malformed_encoding(next_offset)
            skipped = wire[next_offset]
            tail_offset = next_offset + 1 + skipped
            if skipped > 0:
                if tail_offset > len(wire):
                    raise ResolutionError.malformed_encoding(next_offset)
                if _matches_suffix(wire, tail_offset, suffix):
                    return wire[:offset] + b"\x00"

        offset = next_offset


def parse_address_identifier(identifier: bytes) -> Optional[Tuple[str, int]]:
    """Parse an address-shaped identifier `<40 hex address>.<hex coin type>`.

    Returns:
        `(checksum_address, coin_type)`, or None when the identifier has another shape
    """
    try:
        labels = [label for _, label in iter_labels(identifier)]
    except ResolutionError:
        return None
    if len(labels) != 2 or len(labels[0]) != 40 or len(labels[1]) == 0:
        return None
    try:
        address = to_checksum_address("0x" + labels[0].decode("ascii"))
        coin_type = int(labels[1].decode("ascii"), 16)
    except (UnicodeDecodeError, ValueError):
        return None
    return address, coin_type
