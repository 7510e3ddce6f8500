import logging

from aiohttp import web
from eth_utils import decode_hex
from pydantic import BaseModel, ValidationError

from xyz.nxt3d.ecs.app.config import CredentialRouterAppKey
from xyz.nxt3d.ecs.app.handlers.helpers import bad_request, resolution_error_response
from xyz.nxt3d.ecs.errors import ResolutionError
from xyz.nxt3d.ecs.wire.names import encode_name

logger = logging.getLogger(__name__)


class ResolveRequest(BaseModel):
    """
    Body of `POST /resolve`.

    `name` is either a dotted name or `0x`-prefixed DNS wire format. `data` is
    the `0x`-prefixed ABI encoded call, e.g. `text(bytes32,string)`.
    """

    name: str
    data: str


def name_to_wire(name: str) -> bytes:
    if name.startswith("0x"):
        return decode_hex(name)
    return encode_name(name)


async def handle_resolve(request: web.Request):
    router = request.app[CredentialRouterAppKey]

    try:
        body = ResolveRequest.model_validate(await request.json())
        name = name_to_wire(body.name)
        data = decode_hex(body.data)
    except (ValidationError, ValueError) as e:
        raise bad_request(f"invalid resolve request: {e}")

    try:
        result = await router.resolve(name, data)
    except ResolutionError as e:
        raise resolution_error_response(e)

    return web.json_response({"data": "0x" + result.hex()})


async def handle_text(request: web.Request):
    router = request.app[CredentialRouterAppKey]

    name = request.query.get("name", None)
    key = request.query.get("key", None)
    if name is None or key is None:
        raise bad_request("name and key are required")

    try:
        wire = name_to_wire(name)
    except ValueError as e:
        raise bad_request(f"invalid name: {e}")

    try:
        value = await router.resolve_text(wire, key)
    except ResolutionError as e:
        raise resolution_error_response(e)

    return web.json_response({"name": name, "key": key, "value": value})
