from typing import Optional

from aiohttp import web

from newshub.config import CONFIG
from newshub.feed.cache import AggregationCache
from newshub.feed.notifier import HEARTBEAT_FRAME, ChangeNotifier, build_message, format_sse
from newshub.news.source.bitable.auth import TokenManager
from newshub.logging_config import create_logger


logger = create_logger("server")

CACHE_KEY = web.AppKey("cache", AggregationCache)
NOTIFIER_KEY = web.AppKey("notifier", ChangeNotifier)
TOKEN_MANAGER_KEY = web.AppKey("token_manager", TokenManager)
HEARTBEAT_KEY = web.AppKey("heartbeat_interval", float)


async def get_articles(request: web.Request) -> web.Response:
    entry = await request.app[CACHE_KEY].get()
    return web.json_response(entry.to_dict())


async def get_articles_by_category(request: web.Request) -> web.Response:
    entry = await request.app[CACHE_KEY].get_by_category(request.match_info["category"])
    return web.json_response(entry.to_dict())


async def refresh_articles(request: web.Request) -> web.Response:
    entry = await request.app[CACHE_KEY].refresh()
    return web.json_response(entry.to_dict())


async def get_status(request: web.Request) -> web.Response:
    token_manager = request.app.get(TOKEN_MANAGER_KEY)
    return web.json_response({
        "cache": request.app[CACHE_KEY].status().to_dict(),
        "token": token_manager.status() if token_manager is not None else None,
        "subscribers": request.app[NOTIFIER_KEY].subscriber_count,
    })


async def stream_events(request: web.Request) -> web.StreamResponse:
    """Event stream: an init summary, then every update, with heartbeats in between."""
    cache = request.app[CACHE_KEY]
    notifier = request.app[NOTIFIER_KEY]
    heartbeat_interval = request.app[HEARTBEAT_KEY]

    response = web.StreamResponse(headers={
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "Access-Control-Allow-Origin": "*",
    })
    await response.prepare(request)

    # Subscribe before the init message so no update is missed in between
    subscription = notifier.subscribe()
    try:
        entry = await cache.get()
        await response.write(format_sse(build_message("init", entry)).encode("utf-8"))

        while True:
            message = await subscription.next_message(timeout=heartbeat_interval)
            frame = HEARTBEAT_FRAME if message is None else format_sse(message)
            await response.write(frame.encode("utf-8"))
    except ConnectionResetError:
        logger.debug("Event stream client disconnected")
    finally:
        notifier.unsubscribe(subscription)

    return response


def create_app(
    cache: AggregationCache,
    notifier: Optional[ChangeNotifier] = None,
    token_manager: Optional[TokenManager] = None,
    heartbeat_interval: Optional[float] = None,
) -> web.Application:
    app = web.Application()
    app[CACHE_KEY] = cache
    app[NOTIFIER_KEY] = notifier or ChangeNotifier(cache)
    app[HEARTBEAT_KEY] = CONFIG.SSE_HEARTBEAT_INTERVAL if heartbeat_interval is None else heartbeat_interval
    if token_manager is not None:
        app[TOKEN_MANAGER_KEY] = token_manager

    app.router.add_get("/api/articles", get_articles)
    app.router.add_get("/api/articles/{category}", get_articles_by_category)
    app.router.add_post("/api/refresh", refresh_articles)
    app.router.add_get("/api/status", get_status)
    app.router.add_get("/api/sse", stream_events)

    async def start_notifier(app: web.Application) -> None:
        app[NOTIFIER_KEY].start()

    async def stop_notifier(app: web.Application) -> None:
        await app[NOTIFIER_KEY].stop()

    app.on_startup.append(start_notifier)
    app.on_cleanup.append(stop_notifier)
    return app
