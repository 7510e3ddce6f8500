"""Suspend/resume protocol for verified remote reads.

A credential call produces one of three outcomes. `Done` carries the value,
`Failed` carries opaque error bytes, and `Suspend` carries an OffchainLookup
that asks the caller to fetch data from a gateway. RemoteReadProtocol drives a
suspended call through exactly one gateway round trip. The response is checked
by a ProofVerifier, then the call resumes through the resolver's success or
failure callback.
"""

import logging
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple, Union, runtime_checkable

import sentry_sdk

from xyz.nxt3d.ecs.app.metrics import MetricsClient, NoOpMetricsClient
from xyz.nxt3d.ecs.ccip.request import RemoteReadRequest, encode_request
from xyz.nxt3d.ecs.errors import ResolutionError, encode_revert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OffchainLookup:
    """Everything a gateway needs to answer a suspended call."""

    sender: str
    urls: Tuple[str, ...]
    request: RemoteReadRequest
    extra_data: bytes = b""

    @property
    def call_data(self) -> bytes:
        return encode_request(self.request)


@dataclass(frozen=True)
class Done:
    value: str


@dataclass(frozen=True)
class Suspend:
    lookup: OffchainLookup


@dataclass(frozen=True)
class Failed:
    error: bytes


CallOutcome = Union[Done, Suspend, Failed]


@dataclass(frozen=True)
class GatewayResponse:
    values: List[bytes]
    proof: str


class RemoteReadError(Exception):
    """A gateway fetch or proof check failed. `data` holds ABI error bytes."""

    def __init__(self, message: str, data: bytes) -> None:
        super().__init__(message)
        self.data = data


class GatewayFetchError(RemoteReadError):
    pass


class ProofVerificationError(RemoteReadError):
    pass


class GatewayClient(Protocol):
    async def fetch(self, lookup: OffchainLookup) -> GatewayResponse: ...


class ProofVerifier(Protocol):
    def verify(
        self, lookup: OffchainLookup, response: GatewayResponse
    ) -> Sequence[bytes]: ...


@runtime_checkable
class RemoteReadResolver(Protocol):
    address: str

    def credential_callback(
        self, values: Sequence[bytes], extra_data: bytes
    ) -> CallOutcome: ...

    def credential_failure(self, error: bytes, extra_data: bytes) -> CallOutcome: ...


class RemoteReadProtocol:
    """
    Completes credential call outcomes.

    Args:
        gateway: Fetches proposed values and a proof for a lookup
        verifier: Checks the proof and returns the verified values
        metrics_client: Counts lookups and their results
    """

    def __init__(
        self,
        gateway: GatewayClient,
        verifier: ProofVerifier,
        metrics_client: MetricsClient | None = None,
    ) -> None:
        self.gateway = gateway
        self.verifier = verifier
        self.metrics_client = metrics_client or NoOpMetricsClient()

    async def complete(self, resolver, outcome: CallOutcome) -> str:
        """Turn an outcome into a value, fetching remote data when suspended.

        Raises:
            ResolutionError: resolver_failure when the resolver fails without
                a remote read, remote_verification_failure when the remote
                read fails. Both carry the original error bytes untouched.
        """
        if isinstance(outcome, Done):
            return outcome.value
        if isinstance(outcome, Failed):
            raise ResolutionError.resolver_failure(outcome.error)

        lookup = outcome.lookup
        if not isinstance(resolver, RemoteReadResolver):
            raise ResolutionError.remote_verification_failure(
                encode_revert("resolver does not support remote reads")
            )
        if lookup.sender != resolver.address:
            raise ResolutionError.remote_verification_failure(
                encode_revert("OffchainLookup sender mismatch")
            )

        try:
            response = await self.gateway.fetch(lookup)
            values = self.verifier.verify(lookup, response)
        except RemoteReadError as e:
            sentry_sdk.capture_exception(e)
            logger.warning("remote read for %s failed: %s", lookup.sender, e)
            self.metrics_client.increment(
                "ecs.ccip.lookup",
                1,
                tag_dict={"result": type(e).__name__},
            )
            resumed = resolver.credential_failure(e.data, lookup.extra_data)
        else:
            self.metrics_client.increment(
                "ecs.ccip.lookup", 1, tag_dict={"result": "verified"}
            )
            resumed = resolver.credential_callback(values, lookup.extra_data)

        if isinstance(resumed, Suspend):
            raise ResolutionError.remote_verification_failure(
                encode_revert("nested OffchainLookup is not supported")
            )
        if isinstance(resumed, Failed):
            raise ResolutionError.remote_verification_failure(resumed.error)
        return resumed.value
