"""Error taxonomy for credential resolution.

Every failure raised by the wire parser, the namespace registry, the router and
the remote read protocol is a ResolutionError carrying an ErrorKind. Remote
failures additionally carry the opaque revert bytes produced upstream, which
are never rewritten on the way back to the caller.
"""

from enum import IntEnum

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

ERROR_SELECTOR = function_signature_to_4byte_selector("Error(string)")


class ErrorKind(IntEnum):
    """Classification of resolution failures."""

    malformed_encoding = 1
    no_match_found = 2
    unauthorized = 3
    expired = 4
    unsupported_operation = 5
    remote_verification_failure = 6

    invalid_label = 10
    namespace_not_found = 11
    namespace_unavailable = 12
    commitment_not_found = 13
    commitment_too_new = 14
    commitment_too_old = 15
    commitment_exists = 16

    resolver_not_found = 20
    resolver_failure = 21


def encode_revert(message: str) -> bytes:
    """ABI encode a message the way Solidity encodes `Error(string)` reverts."""
    return ERROR_SELECTOR + encode(["string"], [message])


def encode_custom_error(signature: str) -> bytes:
    """Encode an argument-less custom error such as `EmptyResult()`."""
    return function_signature_to_4byte_selector(signature)


class ResolutionError(Exception):
    """
    Raised for any failure in name parsing, namespace administration or
    credential resolution.

    Attributes:
        kind: The ErrorKind of the failure
        data: Opaque error bytes for remote failures, empty otherwise
    """

    def __init__(self, kind: ErrorKind, message: str, data: bytes = b"") -> None:
        super().__init__(message)
        self.kind = kind
        self.data = data

    @staticmethod
    def malformed_encoding(offset: int) -> "ResolutionError":
        """A label length runs past the buffer or the terminator is missing."""
        return ResolutionError(
            ErrorKind.malformed_encoding,
            f"error-ecs-wire-1000 Malformed wire name at offset {offset}",
        )

    @staticmethod
    def no_match_found(marker: bytes) -> "ResolutionError":
        """The name is well formed but carries no qualifying marker label."""
        return ResolutionError(
            ErrorKind.no_match_found,
            f"error-ecs-wire-1001 No {marker.decode('ascii', 'replace')!r} marker found",
        )

    @staticmethod
    def invalid_label(label: str) -> "ResolutionError":
        return ResolutionError(
            ErrorKind.invalid_label, f"error-ecs-registry-2000 Invalid label {label!r}"
        )

    @staticmethod
    def namespace_not_found(namespace: str) -> "ResolutionError":
        return ResolutionError(
            ErrorKind.namespace_not_found,
            f"error-ecs-registry-2001 Namespace {namespace!r} is not registered",
        )

    @staticmethod
    def namespace_unavailable(namespace: str) -> "ResolutionError":
        return ResolutionError(
            ErrorKind.namespace_unavailable,
            f"error-ecs-registry-2002 Namespace {namespace!r} is already registered",
        )

    @staticmethod
    def commitment_not_found(commitment: bytes) -> "ResolutionError":
        return ResolutionError(
            ErrorKind.commitment_not_found,
            f"error-ecs-registry-2003 Commitment 0x{commitment.hex()} not found",
        )

    @staticmethod
    def commitment_too_new(commitment: bytes) -> "ResolutionError":
        return ResolutionError(
            ErrorKind.commitment_too_new,
            f"error-ecs-registry-2004 Commitment 0x{commitment.hex()} is too new",
        )

    @staticmethod
    def commitment_too_old(commitment: bytes) -> "ResolutionError":
        return ResolutionError(
            ErrorKind.commitment_too_old,
            f"error-ecs-registry-2005 Commitment 0x{commitment.hex()} has expired",
        )

    @staticmethod
    def commitment_exists(commitment: bytes) -> "ResolutionError":
        return ResolutionError(
            ErrorKind.commitment_exists,
            f"error-ecs-registry-2006 Commitment 0x{commitment.hex()} is still pending",
        )

    @staticmethod
    def unauthorized(namespace: str, caller: str) -> "ResolutionError":
        """The caller is not the current owner of the namespace."""
        return ResolutionError(
            ErrorKind.unauthorized,
            f"error-ecs-registry-2007 {caller} is not the owner of {namespace!r}",
        )

    @staticmethod
    def expired(namespace: str) -> "ResolutionError":
        """The namespace registration has lapsed."""
        return ResolutionError(
            ErrorKind.expired, f"error-ecs-registry-2008 Namespace {namespace!r} has expired"
        )

    @staticmethod
    def resolver_not_found(resolver: str) -> "ResolutionError":
        """A binding points at an address with no known resolver."""
        return ResolutionError(
            ErrorKind.resolver_not_found,
            f"error-ecs-resolve-3001 No credential resolver deployed at {resolver}",
        )

    @staticmethod
    def resolver_failure(data: bytes) -> "ResolutionError":
        """
        A credential resolver answered with an error of its own.

        The error bytes are kept in `data` exactly as the resolver returned them.
        """
        return ResolutionError(
            ErrorKind.resolver_failure,
            f"error-ecs-resolve-3002 Credential resolver failed: 0x{data.hex()}",
            data=data,
        )

    @staticmethod
    def unsupported_operation(selector: bytes) -> "ResolutionError":
        """The encoded call targets a function the router does not serve."""
        return ResolutionError(
            ErrorKind.unsupported_operation,
            f"error-ecs-resolve-3000 Unsupported function 0x{selector.hex()}",
        )

    @staticmethod
    def remote_verification_failure(data: bytes) -> "ResolutionError":
        """
        The remote read failed or its proof was rejected.

        The original error bytes are kept in `data` exactly as received.
        """
        return ResolutionError(
            ErrorKind.remote_verification_failure,
            f"error-ecs-ccip-4000 Remote read failed: 0x{data.hex()}",
            data=data,
        )
