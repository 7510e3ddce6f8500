"""HTTP client for remote read gateways.

Gateway URLs follow the EIP-3668 template rules. `{sender}` and `{data}` are
replaced with lowercase hex. A URL containing `{data}` is fetched with GET,
anything else receives a JSON POST of `{"sender", "data"}`. URLs are tried in
order: a 4xx answer ends the lookup, a 5xx or transport failure moves on to
the next URL.
"""

import asyncio
import logging
from typing import List

from aiohttp import ClientError, ClientSession, ClientTimeout
from eth_utils import decode_hex
from pydantic import BaseModel, ValidationError
from ulid import ULID

from xyz.nxt3d.ecs.app.metrics import MetricsClient, NoOpMetricsClient
from xyz.nxt3d.ecs.ccip.chain import (
    ChainMiddlewareClient,
    ChainResponse,
    MetricsMiddleware,
    RetryServerErrorMiddleware,
)
from xyz.nxt3d.ecs.ccip.protocol import GatewayFetchError, GatewayResponse, OffchainLookup
from xyz.nxt3d.ecs.errors import encode_revert

logger = logging.getLogger(__name__)


class GatewayPayload(BaseModel):
    values: List[str]
    proof: str


def expand_url(template: str, sender: str, data: str) -> str:
    return template.replace("{sender}", sender).replace("{data}", data)


def parse_gateway_response(response: ChainResponse) -> GatewayResponse:
    """Decode a successful gateway body.

    Raises:
        GatewayFetchError: If the body is not `{"values": [hex...], "proof": str}`
    """
    try:
        payload = GatewayPayload.model_validate(response.body)
        values = [decode_hex(value) for value in payload.values]
    except (ValidationError, ValueError) as e:
        message = "malformed gateway response"
        raise GatewayFetchError(message, encode_revert(message)) from e
    return GatewayResponse(values=values, proof=payload.proof)


class HttpGatewayClient:
    """
    Fetches lookups from gateways over HTTP.

    Args:
        http_session: Shared aiohttp session
        metrics_client: Receives request timings and status counts
        timeout: Total seconds allowed per HTTP request
        attempts: Attempts per URL while the gateway answers 5xx
    """

    def __init__(
        self,
        http_session: ClientSession,
        metrics_client: MetricsClient | None = None,
        timeout: float = 10.0,
        attempts: int = 2,
    ) -> None:
        self.timeout = ClientTimeout(total=timeout)
        self.chain = ChainMiddlewareClient(
            client_session=http_session,
            logger=logger,
            middleware=[
                MetricsMiddleware(metrics_client or NoOpMetricsClient()),
                RetryServerErrorMiddleware(),
            ],
            attempt_max=attempts,
        )

    async def fetch(self, lookup: OffchainLookup) -> GatewayResponse:
        sender = lookup.sender.lower()
        data = "0x" + lookup.call_data.hex()
        request_id = str(ULID())
        headers = {"X-Request-ID": request_id}

        last_message = "no gateway urls"
        for template in lookup.urls:
            url = expand_url(template, sender, data)
            if "{data}" in template:
                context = self.chain.get(url, headers=headers, timeout=self.timeout)
            else:
                context = self.chain.post(
                    url,
                    headers=headers,
                    json={"sender": sender, "data": data},
                    timeout=self.timeout,
                )

            try:
                async with context as (_, response):
                    pass
            except (ClientError, asyncio.TimeoutError) as e:
                last_message = f"{type(e).__name__}: {e}"
                logger.warning(f"gateway {template} failed ({request_id}): {last_message}")
                continue

            if 200 <= response.status < 300:
                return parse_gateway_response(response)

            last_message = response.body_message()
            if 400 <= response.status < 500:
                logger.info(f"gateway {template} rejected lookup ({request_id}): {last_message}")
                raise GatewayFetchError(last_message, encode_revert(last_message))

            logger.warning(f"gateway {template} unavailable ({request_id}): {last_message}")

        raise GatewayFetchError(last_message, encode_revert(last_message))
