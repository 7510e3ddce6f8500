"""Proof verification for gateway responses.

SignedGatewayVerifier accepts responses signed by a trusted gateway. The proof
is an ES256 JWT whose claims bind the answer to the exact lookup:

- `sender`: resolver that suspended the call
- `target`: remote contract that was probed
- `slot`: storage slot derived from the traversal path
- `values`: hex values returned alongside the proof
- `exp`: expiry, enforced by jwcrypto
"""

import json
import logging
from typing import Any, Dict, List, Sequence

from jwcrypto import jwk, jwt
from jwcrypto.common import JWException

from xyz.nxt3d.ecs.ccip.protocol import (
    GatewayResponse,
    OffchainLookup,
    ProofVerificationError,
)
from xyz.nxt3d.ecs.ccip.request import derive_slot
from xyz.nxt3d.ecs.errors import encode_revert

logger = logging.getLogger(__name__)


def _rejected(reason: str) -> ProofVerificationError:
    message = f"proof rejected: {reason}"
    return ProofVerificationError(message, encode_revert(message))


def expected_claims(lookup: OffchainLookup, values: Sequence[bytes]) -> Dict[str, Any]:
    """The claims a gateway must sign for `values` to answer `lookup`."""
    return {
        "sender": lookup.sender.lower(),
        "target": lookup.request.target.lower(),
        "slot": "0x" + derive_slot(lookup.request).hex(),
        "values": ["0x" + value.hex() for value in values],
    }


class SignedGatewayVerifier:
    """
    Verifies gateway responses against a set of trusted signing keys.

    Args:
        signing_keys: Public keys of the trusted gateways
    """

    def __init__(self, signing_keys: jwk.JWKSet) -> None:
        self.signing_keys = signing_keys

    def verify(
        self, lookup: OffchainLookup, response: GatewayResponse
    ) -> List[bytes]:
        try:
            token = jwt.JWT(
                jwt=response.proof,
                key=self.signing_keys,
                algs=["ES256"],
                check_claims={"exp": None},
            )
            claims: Dict[str, Any] = json.loads(token.claims)
        except (JWException, ValueError) as e:
            logger.info(f"gateway proof for {lookup.sender} failed validation: {e}")
            raise _rejected(type(e).__name__) from e

        for name, expected in expected_claims(lookup, response.values).items():
            actual = claims.get(name)
            if isinstance(actual, str):
                actual = actual.lower()
            elif isinstance(actual, list):
                actual = [
                    value.lower() if isinstance(value, str) else value
                    for value in actual
                ]
            if actual != expected:
                raise _rejected(f"{name} mismatch")

        return list(response.values)
