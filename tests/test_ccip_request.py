import pytest
from eth_abi import decode
from eth_utils import keccak

from xyz.nxt3d.ecs.ccip.request import (
    RemoteReadRequest,
    RemoteReadRequestBuilder,
    StepKind,
    TraversalStep,
    decode_uint_value,
    derive_slot,
    encode_request,
)
from xyz.nxt3d.ecs.wire.names import namehash

TARGET = "0x5555555555555555555555555555555555555555"
ACCOUNT = "0xf8e03bd4436371e0e2f7c02e529b2172fe72b4ef"


@pytest.fixture
def builder():
    return RemoteReadRequestBuilder(TARGET, 3)


class TestBuilder:
    def test_for_address_path(self, builder):
        request = builder.for_address(ACCOUNT, 60)
        assert [step.kind for step in request.steps] == [
            StepKind.push,
            StepKind.follow,
            StepKind.push,
            StepKind.follow,
            StepKind.read,
        ]
        assert request.steps[0].value == bytes.fromhex(ACCOUNT[2:])
        assert request.steps[2].value == (60).to_bytes(32, "big")

    def test_for_namespace_path(self, builder):
        node = namehash("vitalik.eth")
        request = builder.for_namespace(node)
        assert request.target == TARGET
        assert request.base_slot == 3
        assert request.steps == (
            TraversalStep(StepKind.push, node),
            TraversalStep(StepKind.follow),
            TraversalStep(StepKind.read),
        )

    def test_requests_are_pure(self, builder):
        assert builder.for_address(ACCOUNT, 60) == builder.for_address(ACCOUNT, 60)
        assert encode_request(builder.for_address(ACCOUNT, 60)) == encode_request(
            builder.for_address(ACCOUNT.upper().replace("0X", "0x"), 60)
        )

    def test_rejects_bad_inputs(self, builder):
        with pytest.raises(ValueError):
            builder.for_namespace(b"\x00" * 31)
        with pytest.raises(ValueError):
            builder.for_address(ACCOUNT, -1)
        with pytest.raises(ValueError):
            builder.for_address("0x1234", 60)
        with pytest.raises(ValueError):
            RemoteReadRequestBuilder(TARGET, -1)


class TestDeriveSlot:
    def test_single_mapping(self, builder):
        node = namehash("vitalik.eth")
        expected = keccak(node + (3).to_bytes(32, "big"))
        assert derive_slot(builder.for_namespace(node)) == expected

    def test_nested_mapping(self, builder):
        outer = keccak(
            bytes.fromhex(ACCOUNT[2:]).rjust(32, b"\x00") + (3).to_bytes(32, "big")
        )
        expected = keccak((60).to_bytes(32, "big") + outer)
        assert derive_slot(builder.for_address(ACCOUNT, 60)) == expected

    def test_follow_without_key(self):
        request = RemoteReadRequest(
            target=TARGET,
            base_slot=0,
            steps=(TraversalStep(StepKind.follow), TraversalStep(StepKind.read)),
        )
        with pytest.raises(ValueError):
            derive_slot(request)

    def test_missing_read(self):
        request = RemoteReadRequest(
            target=TARGET,
            base_slot=0,
            steps=(TraversalStep(StepKind.push, b"\x01"), TraversalStep(StepKind.follow)),
        )
        with pytest.raises(ValueError):
            derive_slot(request)


class TestEncoding:
    def test_encode_request(self, builder):
        request = builder.for_namespace(namehash("vitalik.eth"))
        target, base_slot, steps, output_index = decode(
            ["address", "uint256", "bytes[]", "uint8"], encode_request(request)
        )
        assert target == TARGET
        assert base_slot == 3
        assert steps[0] == b"\x01" + namehash("vitalik.eth")
        assert steps[1:] == (b"\x02", b"\x03")
        assert output_index == 0

    def test_decode_uint_value(self):
        assert decode_uint_value([(4).to_bytes(32, "big")]) == "4"
        assert decode_uint_value([b"\x01\x00"]) == "256"

    def test_decode_empty(self):
        with pytest.raises(ValueError):
            decode_uint_value([])

    def test_decode_wide_value(self):
        with pytest.raises(ValueError):
            decode_uint_value([b"\x01" * 33])
