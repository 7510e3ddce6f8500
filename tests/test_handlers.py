"""
HTTP surface tests, served through aiohttp's test server with the production
middleware stack.
"""

from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils
from eth_abi import decode, encode

from conftest import OWNER, RESOLVER, RESOLVER_B, register_label
from test_router import OFFCHAIN, QUERY, STARS_KEY, text_call
from xyz.nxt3d.ecs.app.config import (
    CredentialRouterAppKey,
    DatabaseSessionMakerAppKey,
    MetricsClientAppKey,
    NamespaceRegistryAppKey,
    Settings,
    SettingsAppKey,
)
from xyz.nxt3d.ecs.app.handlers.internal import handle_internal_ready
from xyz.nxt3d.ecs.app.metrics import MetricsClient
from xyz.nxt3d.ecs.app.server import add_routes, sentry_middleware, statsd_middleware
from xyz.nxt3d.ecs.ccip.protocol import GatewayFetchError, RemoteReadProtocol
from xyz.nxt3d.ecs.ccip.request import RemoteReadRequestBuilder
from xyz.nxt3d.ecs.errors import encode_revert
from xyz.nxt3d.ecs.resolve.router import TEXT_SELECTOR, CredentialRouter
from xyz.nxt3d.ecs.resolvers.offchain import OffchainCredentialResolver
from xyz.nxt3d.ecs.resolvers.onchain import LocalCredentialResolver
from xyz.nxt3d.ecs.wire.names import encode_name


@pytest.fixture
def local_resolver(session_maker, clock):
    return LocalCredentialResolver(RESOLVER, OWNER, session_maker, clock)


@pytest.fixture
def metrics_client():
    return Mock(spec=MetricsClient)


@pytest.fixture
def app(registry, local_resolver, metrics_client, session_maker):
    gateway = Mock()
    gateway.fetch = AsyncMock(
        side_effect=GatewayFetchError("gateway down", encode_revert("gateway down"))
    )
    offchain = OffchainCredentialResolver(
        OFFCHAIN,
        RemoteReadRequestBuilder("0x5555555555555555555555555555555555555555", 0),
        ["https://gw.example/{data}"],
    )
    router = CredentialRouter(
        registry,
        {RESOLVER: local_resolver, OFFCHAIN: offchain},
        RemoteReadProtocol(gateway, Mock()),
    )

    app = web.Application(middlewares=[statsd_middleware, sentry_middleware])
    app[SettingsAppKey] = Settings(metrics_backend="none")
    app[DatabaseSessionMakerAppKey] = session_maker
    app[MetricsClientAppKey] = metrics_client
    app[NamespaceRegistryAppKey] = registry
    app[CredentialRouterAppKey] = router
    add_routes(app)
    return app


@pytest_asyncio.fixture
async def client(app):
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        yield client


async def test_alive(client):
    response = await client.get("/internal/alive")
    assert response.status == 200


async def test_ready(client):
    response = await client.get("/internal/ready")
    assert response.status == 200


async def test_not_ready_without_database():
    app = web.Application()
    app[DatabaseSessionMakerAppKey] = Mock(side_effect=OSError("connection refused"))
    app.router.add_get("/internal/ready", handle_internal_ready)

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        response = await client.get("/internal/ready")

    assert response.status == 503


class TestResolveHandlers:
    async def test_resolve(self, client, registry, clock, local_resolver):
        await register_label(registry, clock, "name-stars", resolver=RESOLVER)
        await local_resolver.set_credential(OWNER, "vitalik.eth", STARS_KEY, "42")

        response = await client.post(
            "/resolve",
            json={"name": QUERY, "data": "0x" + text_call(QUERY, STARS_KEY).hex()},
        )

        assert response.status == 200
        body = await response.json()
        assert decode(["string"], bytes.fromhex(body["data"][2:])) == ("42",)

    async def test_resolve_wire_name(self, client, registry, clock, local_resolver):
        await register_label(registry, clock, "name-stars", resolver=RESOLVER)
        await local_resolver.set_credential(OWNER, "vitalik.eth", STARS_KEY, "42")

        response = await client.post(
            "/resolve",
            json={
                "name": "0x" + encode_name(QUERY).hex(),
                "data": "0x" + text_call(QUERY, STARS_KEY).hex(),
            },
        )

        assert response.status == 200

    async def test_resolve_unsupported_selector(self, client):
        response = await client.post(
            "/resolve", json={"name": QUERY, "data": "0x3b3b57de" + "00" * 32}
        )

        assert response.status == 400
        assert (await response.json())["kind"] == "unsupported_operation"

    async def test_resolve_invalid_body(self, client):
        response = await client.post("/resolve", json={"name": QUERY})

        assert response.status == 400
        assert (await response.json())["kind"] == "bad_request"

    async def test_text(self, client, registry, clock, local_resolver):
        await register_label(registry, clock, "name-stars", resolver=RESOLVER)
        await local_resolver.set_credential(OWNER, "vitalik.eth", STARS_KEY, "42")

        response = await client.get("/text", params={"name": QUERY, "key": STARS_KEY})

        assert response.status == 200
        assert await response.json() == {"name": QUERY, "key": STARS_KEY, "value": "42"}

    async def test_text_missing_key(self, client):
        response = await client.get("/text", params={"name": QUERY})
        assert response.status == 400

    async def test_text_no_marker(self, client):
        response = await client.get(
            "/text", params={"name": "vitalik.eth", "key": STARS_KEY}
        )

        assert response.status == 400
        assert (await response.json())["kind"] == "no_match_found"

    async def test_text_undeployed_resolver(self, client, registry, clock):
        await register_label(registry, clock, "name-stars", resolver=RESOLVER_B)

        response = await client.get("/text", params={"name": QUERY, "key": STARS_KEY})

        assert response.status == 404
        assert (await response.json())["kind"] == "resolver_not_found"

    async def test_text_remote_failure(self, client, registry, clock):
        await register_label(registry, clock, "name-stars", resolver=OFFCHAIN)

        response = await client.get("/text", params={"name": QUERY, "key": STARS_KEY})

        assert response.status == 502
        body = await response.json()
        assert body["kind"] == "remote_verification_failure"
        assert body["data"] == "0x" + encode_revert("gateway down").hex()


class TestRegistryHandlers:
    async def test_registered_namespace(self, client, registry, clock):
        entry = await register_label(registry, clock, "name-stars", resolver=RESOLVER)

        response = await client.get("/registry/namespaces/name-stars")

        assert response.status == 200
        assert await response.json() == {
            "label": "name-stars",
            "available": False,
            "namespaceHash": "0x" + entry.namespace_hash.hex(),
            "owner": OWNER,
            "resolver": RESOLVER,
            "expires": entry.expires_at,
            "resolverUpdated": entry.resolver_updated_at,
        }

    async def test_available_namespace(self, client):
        response = await client.get("/registry/namespaces/free")

        assert response.status == 200
        assert await response.json() == {"label": "free", "available": True}

    async def test_invalid_label(self, client):
        response = await client.get("/registry/namespaces/a:b")

        assert response.status == 400
        assert (await response.json())["kind"] == "invalid_label"

    async def test_resolver_info(self, client, registry, clock):
        entry = await register_label(registry, clock, "name-stars", resolver=RESOLVER)

        response = await client.get(f"/registry/resolver-info/{RESOLVER}")

        assert response.status == 200
        assert await response.json() == {
            "label": "name-stars",
            "name": "name-stars.ecs.eth",
            "resolverUpdated": entry.resolver_updated_at,
            "chainId": 11155111,
            "registry": "0x016BfbF42131004401ABdfe208F17A1620faB742",
        }

    async def test_unbound_resolver(self, client):
        response = await client.get(f"/registry/resolver-info/{RESOLVER_B}")
        assert response.status == 404

    async def test_bad_resolver_address(self, client):
        response = await client.get("/registry/resolver-info/0x1234")
        assert response.status == 400


class TestMiddleware:
    async def test_request_metrics(self, client, metrics_client):
        await client.get("/registry/namespaces/free")

        metrics_client.increment.assert_any_call(
            "ecs.server.request.count",
            1,
            tag_dict={
                "path": "/registry/namespaces/{label}",
                "method": "GET",
                "status": 200,
            },
        )
        assert metrics_client.timer.call_args[0][0] == "ecs.server.request.time"

    async def test_error_status_is_counted(self, client, metrics_client):
        await client.get("/text", params={"name": QUERY})

        metrics_client.increment.assert_any_call(
            "ecs.server.request.count",
            1,
            tag_dict={"path": "/text", "method": "GET", "status": 400},
        )


async def test_resolver_info_without_registry_deployment(app, registry, clock):
    await register_label(registry, clock, "name-stars", resolver=RESOLVER)
    app[SettingsAppKey] = Settings(metrics_backend="none", chain_id=1)

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        response = await client.get(f"/registry/resolver-info/{RESOLVER}")
        body = await response.json()

    assert response.status == 200
    assert body["chainId"] == 1
    assert body["registry"] == "0x0000000000000000000000000000000000000000"


async def test_resolve_key_that_is_not_utf8(client):
    data = TEXT_SELECTOR + encode(["bytes32", "bytes"], [b"\x00" * 32, b"\xff\xfe"])

    response = await client.post("/resolve", json={"name": QUERY, "data": "0x" + data.hex()})

    assert response.status == 400
    assert (await response.json())["kind"] == "malformed_encoding"
