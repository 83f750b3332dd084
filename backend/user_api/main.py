import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import FrameType

import sentry_sdk
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from fastapi.routing import APIRoute
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import RequestResponseEndpoint

from user_api.api.main import api_router
from user_api.api.routes.users import USER_PATH, unsupported_method_error
from user_api.core.config import Settings, get_settings
from user_api.core.errors import DatastoreUnavailable, ShuttingDown
from user_api.core.lifecycle import LifecycleController
from user_api.core.pool import Datastore

_logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # drain waits on a condition variable; keep the event loop free meanwhile
    await asyncio.to_thread(app.state.lifecycle.shutdown)


def create_app(
    settings: Settings | None = None,
    datastore: Datastore | None = None,
) -> FastAPI:
    """
    Build the application around an already-verified datastore.

    Without arguments, settings come from the environment and the datastore is
    opened (and pinged) here, so a bad configuration fails before serving.
    """
    if settings is None:
        settings = get_settings()
    if datastore is None:
        datastore = Datastore.open(settings)

    if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
        sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.datastore = datastore
    app.state.lifecycle = LifecycleController(
        datastore, drain_timeout=settings.SHUTDOWN_DRAIN_TIMEOUT
    )

    @app.middleware("http")
    async def track_in_flight(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Refuse new work once shutdown has started; count everything else as in flight."""
        lifecycle: LifecycleController = request.app.state.lifecycle
        try:
            lifecycle.enter()
        except ShuttingDown:
            return JSONResponse(
                status_code=503, content={"detail": "Service is shutting down"}
            )
        try:
            return await call_next(request)
        finally:
            lifecycle.leave()

    @app.exception_handler(StarletteHTTPException)
    async def method_not_allowed_handler(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        """Methods the router does not know on /user are a client error (400), not 405."""
        if exc.status_code == 405 and request.url.path == USER_PATH:
            return await http_exception_handler(
                request, unsupported_method_error(request.method)
            )
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions: log and return 500 without internals."""
        _logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    app.include_router(api_router)
    return app


class Server(uvicorn.Server):
    """uvicorn server that broadcasts the shutdown token as soon as a signal lands."""

    def __init__(self, config: uvicorn.Config, lifecycle: LifecycleController) -> None:
        super().__init__(config)
        self.lifecycle = lifecycle

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        self.lifecycle.request_shutdown(sig)
        super().handle_exit(sig, frame)
        # uvicorn re-raises captured signals once run() returns, which would kill
        # the process before run() below can choose the exit status
        captured = getattr(self, "_captured_signals", None)
        if captured is not None:
            captured.clear()


def run() -> None:
    """Entry point: fail fast on bad config or an unreachable datastore, then serve."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    try:
        settings = get_settings()
    except ValidationError as e:
        _logger.critical("Invalid configuration:\n%s", e)
        sys.exit(1)
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    try:
        datastore = Datastore.open(settings)
    except DatastoreUnavailable as e:
        _logger.critical("fail: open datastore, %s", e)
        sys.exit(1)

    app = create_app(settings, datastore)
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=settings.SHUTDOWN_DRAIN_TIMEOUT,
    )
    server = Server(config, app.state.lifecycle)
    _logger.info("Listening on :%d", settings.PORT)
    server.run()

    failure = app.state.lifecycle.failure
    if failure is not None:
        _logger.critical("fail: shutdown, %s", failure)
        sys.exit(1)
    _logger.info("success: datastore closed")
    sys.exit(0)


if __name__ == "__main__":
    run()
