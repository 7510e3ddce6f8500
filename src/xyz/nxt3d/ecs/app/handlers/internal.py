import logging

from aiohttp import web
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from xyz.nxt3d.ecs.app.config import DatabaseSessionMakerAppKey

logger = logging.getLogger(__name__)


async def handle_internal_ready(request: web.Request):
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    try:
        async with database_session_maker() as database_session:
            await database_session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"readiness check failed: {type(e).__name__}: {e}")
        return web.Response(status=503)
    return web.Response(status=200)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)
