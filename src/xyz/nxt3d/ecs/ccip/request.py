"""Storage-probe requests for verified remote reads.

A RemoteReadRequest names a contract on the remote chain, a base storage slot
and a traversal path. `push` places a key on the stack, `follow` indexes the
current mapping slot with the top key, and `read` marks the slot whose value
is returned. For example, `for_address` probes `mapping(address => mapping(
uint256 => uint256))` at the base slot.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Sequence, Tuple

from eth_abi import encode
from eth_utils import keccak

from xyz.nxt3d.ecs.addresses import checksum

UINT256_MAX = 2**256 - 1


class StepKind(IntEnum):
    push = 1
    follow = 2
    read = 3


@dataclass(frozen=True)
class TraversalStep:
    kind: StepKind
    value: bytes = b""

    def encode(self) -> bytes:
        return bytes([self.kind]) + self.value


@dataclass(frozen=True)
class RemoteReadRequest:
    """A fully validated remote storage probe. Never persisted."""

    target: str
    base_slot: int
    steps: Tuple[TraversalStep, ...] = field(default_factory=tuple)
    output_index: int = 0


def pad32(value: bytes) -> bytes:
    if len(value) > 32:
        raise ValueError("value is wider than 32 bytes")
    return value.rjust(32, b"\x00")


def derive_slot(request: RemoteReadRequest) -> bytes:
    """Compute the storage slot a request reads.

    Each `follow` applies Solidity's mapping rule,
    `keccak(pad32(key) ++ pad32(slot))`, with the most recently pushed key.

    Raises:
        ValueError: If the path follows with an empty stack or never reads
    """
    slot = request.base_slot.to_bytes(32, "big")
    stack: List[bytes] = []
    read_slot = None
    for step in request.steps:
        if step.kind == StepKind.push:
            stack.append(pad32(step.value))
        elif step.kind == StepKind.follow:
            if not stack:
                raise ValueError("follow without a pushed key")
            slot = keccak(stack.pop() + slot)
        elif step.kind == StepKind.read:
            read_slot = slot
    if read_slot is None:
        raise ValueError("traversal path has no read step")
    return read_slot


def encode_request(request: RemoteReadRequest) -> bytes:
    """Canonical ABI encoding of a request, sent to gateways as `{data}`."""
    return encode(
        ["address", "uint256", "bytes[]", "uint8"],
        [
            request.target,
            request.base_slot,
            [step.encode() for step in request.steps],
            request.output_index,
        ],
    )


def decode_uint_value(values: Sequence[bytes]) -> str:
    """Render the first returned storage word as a decimal string.

    Raises:
        ValueError: If no value was returned or the first value is wider than 32 bytes
    """
    if len(values) == 0:
        raise ValueError("empty result set")
    word = values[0]
    if len(word) > 32:
        raise ValueError("storage value is wider than 32 bytes")
    return str(int.from_bytes(word, "big"))


class RemoteReadRequestBuilder:
    """
    Builds storage probes against one remote contract.

    Args:
        target: Address of the contract holding the data on the remote chain
        base_slot: Storage slot of the outermost mapping
    """

    def __init__(self, target: str, base_slot: int) -> None:
        if base_slot < 0 or base_slot > UINT256_MAX:
            raise ValueError("base_slot out of range")
        self.target = checksum(target)
        self.base_slot = base_slot

    def for_address(self, address: str, coin_type: int) -> RemoteReadRequest:
        """Probe `mapping[address][coin_type]`."""
        if coin_type < 0 or coin_type > UINT256_MAX:
            raise ValueError("coin_type out of range")
        address_bytes = bytes.fromhex(checksum(address)[2:])
        return RemoteReadRequest(
            target=self.target,
            base_slot=self.base_slot,
            steps=(
                TraversalStep(StepKind.push, address_bytes),
                TraversalStep(StepKind.follow),
                TraversalStep(StepKind.push, coin_type.to_bytes(32, "big")),
                TraversalStep(StepKind.follow),
                TraversalStep(StepKind.read),
            ),
        )

    def for_namespace(self, node: bytes) -> RemoteReadRequest:
        """Probe `mapping[node]` for a precomputed namehash."""
        if len(node) != 32:
            raise ValueError("node must be exactly 32 bytes")
        return RemoteReadRequest(
            target=self.target,
            base_slot=self.base_slot,
            steps=(
                TraversalStep(StepKind.push, node),
                TraversalStep(StepKind.follow),
                TraversalStep(StepKind.read),
            ),
        )
