"""One-shot loopback HTTP listener that catches the OAuth redirect.

The provider redirects the browser to ``http://127.0.0.1:{port}/?code=...``
(or ``?error=...``).  :class:`CallbackListener` hosts a tiny FastAPI app on
uvicorn for exactly one terminal outcome:

- ``code`` present → HTML success page (200), the code is returned.
- ``error`` present → HTML rejection page (400), ``AuthorizationDeniedError``.
- anything else → 400 and the listener keeps waiting.
- nothing terminal before the deadline → ``AuthorizationTimeoutError``.

The listener is an async context manager: the socket is bound on entry and
the server is torn down and the port released on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import socket

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from caldav_cli.errors import (
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    CallbackServerError,
    PortAllocationError,
)

logger = logging.getLogger(__name__)

CALLBACK_HOST = "127.0.0.1"
DEFAULT_TIMEOUT_SECONDS = 120.0

_STARTUP_POLL_SECONDS = 0.01
_SHUTDOWN_GRACE_SECONDS = 5.0

SUCCESS_PAGE = (
    "<html><body><h1>Authorization successful</h1>"
    "<p>You can close this window and return to the terminal.</p></body></html>"
)
DENIED_PAGE = (
    "<html><body><h1>Authorization denied</h1><p>You can close this window.</p></body></html>"
)
MISSING_CODE_PAGE = "<html><body><h1>Missing authorization code</h1></body></html>"
ALREADY_HANDLED_PAGE = (
    "<html><body><h1>Authorization already handled</h1>"
    "<p>You can close this window.</p></body></html>"
)


def reserve_local_port(host: str = CALLBACK_HOST) -> int:
    """Discover a free loopback port by binding port 0 and releasing it.

    Raises
    ------
    PortAllocationError
        If the OS refuses to bind an anonymous port.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            port = sock.getsockname()[1]
    except OSError as exc:
        raise PortAllocationError(f"Failed to find an available port: {exc}") from exc
    logger.debug("Reserved local port %d for OAuth callback", port)
    return port


def build_callback_app(outcome: asyncio.Future[str]) -> FastAPI:
    """Build the redirect handler app; it resolves *outcome* at most once."""
    app = FastAPI(
        title="caldav-cli OAuth callback",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.get("/{path:path}")
    async def oauth_callback(request: Request) -> HTMLResponse:
        if outcome.done():
            return HTMLResponse(ALREADY_HANDLED_PAGE, status_code=400)

        error = request.query_params.get("error")
        if error:
            logger.warning("OAuth provider redirected with error: %s", error)
            outcome.set_exception(AuthorizationDeniedError(error))
            return HTMLResponse(DENIED_PAGE, status_code=400)

        code = request.query_params.get("code")
        if code:
            logger.info("OAuth authorization code received")
            outcome.set_result(code)
            return HTMLResponse(SUCCESS_PAGE, status_code=200)

        logger.debug("Ignoring callback request without code or error: %s", request.url.path)
        return HTMLResponse(MISSING_CODE_PAGE, status_code=400)

    return app


class CallbackListener:
    """Scoped loopback server waiting for a single OAuth redirect.

    Usage::

        async with CallbackListener(port, timeout=120) as listener:
            open_browser(url)
            code = await listener.wait_for_code()

    The timeout clock starts when the listener is entered, so time spent
    launching the browser counts against it.
    """

    def __init__(
        self,
        port: int,
        *,
        host: str = CALLBACK_HOST,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.port = port
        self.host = host
        self.timeout = timeout
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._outcome: asyncio.Future[str] | None = None
        self._deadline: float | None = None

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def __aenter__(self) -> CallbackListener:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        """Bind the port and start serving; returns once uvicorn is accepting."""
        loop = asyncio.get_running_loop()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as exc:
            sock.close()
            raise CallbackServerError(f"Failed to start local OAuth server: {exc}") from exc
        self._socket = sock

        self._outcome = loop.create_future()
        config = uvicorn.Config(
            build_callback_app(self._outcome),
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=int(_SHUTDOWN_GRACE_SECONDS),
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[sock]))
        self._deadline = loop.time() + self.timeout

        while not self._server.started:
            if self._serve_task.done():
                await self.close()
                raise CallbackServerError("Local OAuth server exited during startup")
            await asyncio.sleep(_STARTUP_POLL_SECONDS)

        logger.debug("OAuth callback listener ready on %s", self.redirect_uri)

    async def wait_for_code(self) -> str:
        """Block until the first terminal redirect or the deadline.

        Raises
        ------
        AuthorizationDeniedError
            The redirect carried an ``error`` parameter.
        AuthorizationTimeoutError
            Nothing terminal arrived before the deadline.
        CallbackServerError
            The server stopped before any terminal redirect.
        """
        if self._outcome is None or self._serve_task is None or self._deadline is None:
            raise CallbackServerError("Callback listener has not been started")

        remaining = max(self._deadline - asyncio.get_running_loop().time(), 0.0)
        done, _ = await asyncio.wait(
            {self._outcome, self._serve_task},
            timeout=remaining,
            return_when=asyncio.FIRST_COMPLETED,
        )

        if self._outcome in done:
            return self._outcome.result()
        if self._serve_task in done:
            raise CallbackServerError("Local OAuth server stopped before a redirect arrived")

        logger.warning("No OAuth redirect received within %gs", self.timeout)
        raise AuthorizationTimeoutError(self.timeout)

    async def close(self) -> None:
        """Stop the server and release the socket.  Safe to call repeatedly."""
        if self._server is not None:
            self._server.should_exit = True

        task = self._serve_task
        if task is not None:
            _, pending = await asyncio.wait({task}, timeout=_SHUTDOWN_GRACE_SECONDS)
            if pending:
                task.cancel()
                await asyncio.wait({task})
            elif not task.cancelled() and task.exception() is not None:
                logger.warning("OAuth callback server exited with error: %s", task.exception())
            self._serve_task = None

        if self._outcome is not None and not self._outcome.done():
            self._outcome.cancel()

        if self._socket is not None:
            self._socket.close()
            self._socket = None

        self._server = None
        logger.debug("OAuth callback listener on port %d closed", self.port)


async def await_authorization_code(
    port: int,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    *,
    host: str = CALLBACK_HOST,
) -> str:
    """Serve ``host:port`` until one redirect delivers a code, an error, or time runs out."""
    async with CallbackListener(port, host=host, timeout=timeout) as listener:
        return await listener.wait_for_code()
