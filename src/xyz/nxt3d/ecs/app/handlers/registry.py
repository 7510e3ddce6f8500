from aiohttp import web

from xyz.nxt3d.ecs.addresses import ZERO_ADDRESS
from xyz.nxt3d.ecs.app.config import NamespaceRegistryAppKey, SettingsAppKey
from xyz.nxt3d.ecs.app.handlers.helpers import bad_request, resolution_error_response
from xyz.nxt3d.ecs.errors import ResolutionError


async def handle_namespace(request: web.Request):
    registry = request.app[NamespaceRegistryAppKey]
    label = request.match_info["label"]

    try:
        available = await registry.is_available(label)
    except ResolutionError as e:
        raise resolution_error_response(e)

    entry = await registry.get_namespace(label)
    if entry is None:
        return web.json_response({"label": label, "available": available})

    return web.json_response(
        {
            "label": entry.label,
            "available": available,
            "namespaceHash": "0x" + entry.namespace_hash.hex(),
            "owner": entry.owner,
            "resolver": entry.resolver or ZERO_ADDRESS,
            "expires": entry.expires_at,
            "resolverUpdated": entry.resolver_updated_at,
        }
    )


async def handle_resolver_info(request: web.Request):
    """Reverse lookup from a resolver address to the namespace it serves."""
    registry = request.app[NamespaceRegistryAppKey]
    settings = request.app[SettingsAppKey]

    try:
        info = await registry.resolver_info(request.match_info["address"])
    except ValueError as e:
        raise bad_request(str(e))

    if info is None:
        raise web.HTTPNotFound(
            body='{"error": "resolver is not bound to a namespace"}',
            content_type="application/json",
        )

    try:
        registry_address = settings.registry_address
    except ValueError:
        registry_address = ZERO_ADDRESS

    return web.json_response(
        {
            "label": info.label,
            "name": registry.namespace_name(info.label),
            "resolverUpdated": info.resolver_updated_at,
            "chainId": settings.chain_id,
            "registry": registry_address,
        }
    )
