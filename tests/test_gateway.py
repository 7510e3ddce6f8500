"""
Tests for the HTTP gateway client: URL templates, method selection and the
4xx/5xx fallback rules.
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest
from aiohttp import ClientConnectionError, ClientSession

from test_chain import chain_response, create_mock_response
from xyz.nxt3d.ecs.ccip.gateway import (
    HttpGatewayClient,
    expand_url,
    parse_gateway_response,
)
from xyz.nxt3d.ecs.ccip.protocol import GatewayFetchError, OffchainLookup
from xyz.nxt3d.ecs.ccip.request import RemoteReadRequestBuilder
from xyz.nxt3d.ecs.errors import encode_revert
from xyz.nxt3d.ecs.wire.names import namehash

SENDER = "0x6666666666666666666666666666666666666666"
TARGET = "0x5555555555555555555555555555555555555555"
GOOD_BODY = {"values": ["0x2a"], "proof": "signed"}


def make_lookup(*urls):
    request = RemoteReadRequestBuilder(TARGET, 0).for_namespace(namehash("vitalik.eth"))
    return OffchainLookup(sender=SENDER, urls=tuple(urls), request=request)


def make_client(*responses, attempts=1):
    mock_session = Mock(spec=ClientSession)
    mock_session.request = AsyncMock(side_effect=list(responses))
    return HttpGatewayClient(mock_session, attempts=attempts), mock_session


class TestHelpers:
    def test_expand_url(self):
        assert (
            expand_url("https://gw/{sender}/{data}.json", "0xabc", "0x01")
            == "https://gw/0xabc/0x01.json"
        )

    def test_parse_gateway_response(self):
        response = parse_gateway_response(chain_response(200, GOOD_BODY))
        assert response.values == [b"\x2a"]
        assert response.proof == "signed"

    @pytest.mark.parametrize(
        "body",
        [
            {"values": "0x2a", "proof": "signed"},
            {"values": ["0x2a"]},
            {"values": ["0xzz"], "proof": "signed"},
            "not json",
            None,
        ],
    )
    def test_parse_malformed_response(self, body):
        with pytest.raises(GatewayFetchError) as exc_info:
            parse_gateway_response(chain_response(200, body))
        assert exc_info.value.data == encode_revert("malformed gateway response")


class TestHttpGatewayClient:
    async def test_get_when_template_has_data(self):
        lookup = make_lookup("https://gw.example/{sender}/{data}.json")
        client, mock_session = make_client(create_mock_response(body=GOOD_BODY))

        response = await client.fetch(lookup)

        assert response.values == [b"\x2a"]
        method, url = mock_session.request.call_args[0]
        assert method == "get"
        assert url == (
            f"https://gw.example/{SENDER.lower()}/0x{lookup.call_data.hex()}.json"
        )
        kwargs = mock_session.request.call_args[1]
        assert "json" not in kwargs
        assert "X-Request-ID" in kwargs["headers"]

    async def test_post_without_data_placeholder(self):
        lookup = make_lookup("https://gw.example/lookup")
        client, mock_session = make_client(create_mock_response(body=GOOD_BODY))

        await client.fetch(lookup)

        method, url = mock_session.request.call_args[0]
        assert method == "post"
        assert url == "https://gw.example/lookup"
        assert mock_session.request.call_args[1]["json"] == {
            "sender": SENDER.lower(),
            "data": "0x" + lookup.call_data.hex(),
        }

    async def test_client_error_stops_lookup(self):
        lookup = make_lookup("https://a.example/{data}", "https://b.example/{data}")
        client, mock_session = make_client(
            create_mock_response(status=404, body={"message": "unknown sender"}),
            create_mock_response(body=GOOD_BODY),
        )

        with pytest.raises(GatewayFetchError) as exc_info:
            await client.fetch(lookup)

        assert exc_info.value.data == encode_revert("unknown sender")
        assert mock_session.request.await_count == 1

    async def test_server_error_falls_through(self):
        lookup = make_lookup("https://a.example/{data}", "https://b.example/{data}")
        client, mock_session = make_client(
            create_mock_response(status=503, content_type="text/plain", body="busy"),
            create_mock_response(status=503, content_type="text/plain", body="busy"),
            create_mock_response(body=GOOD_BODY),
            attempts=2,
        )

        response = await client.fetch(lookup)

        assert response.values == [b"\x2a"]
        assert mock_session.request.await_count == 3
        assert mock_session.request.call_args[0][1].startswith("https://b.example/")

    async def test_transport_error_falls_through(self):
        lookup = make_lookup("https://a.example/{data}", "https://b.example/{data}")
        client, mock_session = make_client(
            ClientConnectionError("connection refused"),
            create_mock_response(body=GOOD_BODY),
        )

        response = await client.fetch(lookup)

        assert response.proof == "signed"
        assert mock_session.request.await_count == 2

    async def test_all_urls_exhausted(self):
        lookup = make_lookup("https://a.example/{data}", "https://b.example/{data}")
        client, _ = make_client(
            create_mock_response(status=500, content_type="text/plain", body="down"),
            create_mock_response(status=502, body={}),
        )

        with pytest.raises(GatewayFetchError) as exc_info:
            await client.fetch(lookup)

        assert exc_info.value.data == encode_revert("HTTP 502")

    async def test_no_urls(self):
        client, mock_session = make_client()

        with pytest.raises(GatewayFetchError) as exc_info:
            await client.fetch(make_lookup())

        assert str(exc_info.value) == "no gateway urls"
        mock_session.request.assert_not_called()

    async def test_malformed_success_body(self):
        lookup = make_lookup("https://a.example/{data}", "https://b.example/{data}")
        client, mock_session = make_client(
            create_mock_response(body={"unexpected": True}),
            create_mock_response(body=GOOD_BODY),
        )

        with pytest.raises(GatewayFetchError):
            await client.fetch(lookup)
        assert mock_session.request.await_count == 1

    async def test_success_body_that_is_not_json(self):
        response = create_mock_response()
        response.json = AsyncMock(
            side_effect=json.JSONDecodeError("Expecting value", "not json", 0)
        )
        response.read = AsyncMock(return_value=b"not json")
        client, _ = make_client(response)

        with pytest.raises(GatewayFetchError) as exc_info:
            await client.fetch(make_lookup("https://a.example/{data}"))

        assert exc_info.value.data == encode_revert("malformed gateway response")

    async def test_server_error_body_that_is_not_json_falls_through(self):
        broken = create_mock_response(status=502)
        broken.json = AsyncMock(
            side_effect=json.JSONDecodeError("Expecting value", "<html>", 0)
        )
        broken.read = AsyncMock(return_value=b"<html>")
        lookup = make_lookup("https://a.example/{data}", "https://b.example/{data}")
        client, mock_session = make_client(broken, create_mock_response(body=GOOD_BODY))

        response = await client.fetch(lookup)

        assert response.values == [b"\x2a"]
        assert mock_session.request.await_count == 2
