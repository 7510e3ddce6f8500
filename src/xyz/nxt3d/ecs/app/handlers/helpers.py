import json
import logging
from typing import Dict, Type

from aiohttp import web
import sentry_sdk

from xyz.nxt3d.ecs.errors import ErrorKind, ResolutionError

logger = logging.getLogger(__name__)

ERROR_RESPONSES: Dict[ErrorKind, Type[web.HTTPException]] = {
    ErrorKind.malformed_encoding: web.HTTPBadRequest,
    ErrorKind.no_match_found: web.HTTPBadRequest,
    ErrorKind.unsupported_operation: web.HTTPBadRequest,
    ErrorKind.invalid_label: web.HTTPBadRequest,
    ErrorKind.unauthorized: web.HTTPForbidden,
    ErrorKind.namespace_not_found: web.HTTPNotFound,
    ErrorKind.resolver_not_found: web.HTTPNotFound,
    ErrorKind.expired: web.HTTPGone,
    ErrorKind.remote_verification_failure: web.HTTPBadGateway,
    ErrorKind.resolver_failure: web.HTTPBadGateway,
}


def error_body(error: str, kind: str, data: bytes = b"") -> str:
    return json.dumps({"error": error, "kind": kind, "data": "0x" + data.hex()})


def resolution_error_response(e: ResolutionError) -> web.HTTPException:
    """
    Map a ResolutionError to an HTTP error carrying its kind and raw error bytes.

    Remote failures are reported to Sentry; the other kinds are caller errors.
    """
    error_class = ERROR_RESPONSES.get(e.kind, web.HTTPBadRequest)
    if error_class.status_code >= 500:
        sentry_sdk.capture_exception(e)
        logger.warning(f"resolution failed: {e}")
    else:
        logger.debug(f"resolution rejected: {e}")

    return error_class(
        body=error_body(str(e), e.kind.name, e.data),
        content_type="application/json",
    )


def bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(
        body=error_body(message, "bad_request"),
        content_type="application/json",
    )
