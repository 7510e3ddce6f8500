import logging
from time import time
from typing import Dict, Optional, Sequence

import aiohttp
from aiohttp import web
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from xyz.nxt3d.ecs.app.config import (
    CredentialRouterAppKey,
    DatabaseAppKey,
    DatabaseSessionMakerAppKey,
    MetricsClientAppKey,
    NamespaceRegistryAppKey,
    ResolverDeployment,
    SessionAppKey,
    Settings,
    SettingsAppKey,
)
from xyz.nxt3d.ecs.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
)
from xyz.nxt3d.ecs.app.handlers.registry import handle_namespace, handle_resolver_info
from xyz.nxt3d.ecs.app.handlers.resolve import handle_resolve, handle_text
from xyz.nxt3d.ecs.app.metrics import MetricsClient, create_metrics_client
from xyz.nxt3d.ecs.ccip.gateway import HttpGatewayClient
from xyz.nxt3d.ecs.ccip.protocol import RemoteReadProtocol
from xyz.nxt3d.ecs.ccip.request import RemoteReadRequestBuilder
from xyz.nxt3d.ecs.ccip.verifier import SignedGatewayVerifier
from xyz.nxt3d.ecs.registry.namespaces import NamespaceRegistry
from xyz.nxt3d.ecs.resolve.matcher import NamespaceMatcher
from xyz.nxt3d.ecs.resolve.router import CredentialRouter
from xyz.nxt3d.ecs.resolvers.base import CredentialResolver
from xyz.nxt3d.ecs.resolvers.offchain import OffchainCredentialResolver
from xyz.nxt3d.ecs.resolvers.onchain import LocalCredentialResolver

logger = logging.getLogger(__name__)


def build_resolvers(
    deployments: Sequence[ResolverDeployment],
    session_maker: async_sessionmaker[AsyncSession],
) -> Dict[str, CredentialResolver]:
    resolvers: Dict[str, CredentialResolver] = {}
    for deployment in deployments:
        resolver: CredentialResolver
        if deployment.kind == "local":
            resolver = LocalCredentialResolver(
                deployment.address, deployment.controller, session_maker
            )
        else:
            resolver = OffchainCredentialResolver(
                deployment.address,
                RemoteReadRequestBuilder(deployment.target, deployment.base_slot),
                deployment.urls,
            )
        resolvers[resolver.address] = resolver
    logger.info(f"Loaded {len(resolvers)} credential resolvers")
    return resolvers


def build_router(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
    http_session: aiohttp.ClientSession,
    metrics_client: MetricsClient,
) -> CredentialRouter:
    registry = NamespaceRegistry(
        session_maker,
        parent_name=settings.parent_name,
        min_commitment_age=settings.min_commitment_age,
        max_commitment_age=settings.max_commitment_age,
        registration_duration=settings.registration_duration,
    )
    protocol = RemoteReadProtocol(
        HttpGatewayClient(
            http_session,
            metrics_client,
            timeout=settings.gateway_timeout,
            attempts=settings.gateway_attempts,
        ),
        SignedGatewayVerifier(settings.gateway_signing_keys),
        metrics_client,
    )
    scope = settings.credential_key_prefix.split(".") if settings.credential_key_prefix else []
    return CredentialRouter(
        registry,
        build_resolvers(settings.resolver_deployments, session_maker),
        protocol,
        matcher=NamespaceMatcher(scope),
        markers=[marker.encode("utf-8") for marker in settings.identifier_markers],
        metrics_client=metrics_client,
    )


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    engine = create_async_engine(str(settings.pg_dsn))
    app[DatabaseAppKey] = engine
    database_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    app[DatabaseSessionMakerAppKey] = database_session

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting gateway request: %s", params)

        async def on_request_end(session, trace_config_ctx, params):
            logging.info("Ending gateway request: %s", params)

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(trace_configs=[trace_config])

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        debug=settings.debug,
    )
    await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    router = build_router(settings, database_session, app[SessionAppKey], metrics_client)
    app[NamespaceRegistryAppKey] = router.registry
    app[CredentialRouterAppKey] = router

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    await app[DatabaseAppKey].dispose()
    await app[SessionAppKey].close()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    prefix = request.app[SettingsAppKey].statsd_prefix
    request_method: str = request.method
    resource = request.match_info.route.resource
    request_path = resource.canonical if resource is not None else request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            f"{prefix}.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            f"{prefix}.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            f"{prefix}.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


def add_routes(app: web.Application) -> None:
    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
            web.post("/resolve", handle_resolve),
            web.get("/text", handle_text),
            web.get("/registry/namespaces/{label}", handle_namespace),
            web.get("/registry/resolver-info/{address}", handle_resolver_info),
        ]
    )


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=True,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(middlewares=[statsd_middleware, sentry_middleware])

    app[SettingsAppKey] = settings

    add_routes(app)

    app.cleanup_ctx.append(background_tasks)

    return app
