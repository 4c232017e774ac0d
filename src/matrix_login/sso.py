"""Local callback endpoint that receives the SSO login token.

The homeserver redirects the browser to ``http://127.0.0.1:<port>/sso`` with a
``loginToken`` query parameter once the user has authenticated. The first
token or failure wins; later callbacks are ignored.
"""

import asyncio
import logging
import socket

from aiohttp import web

from .errors import SsoFailed

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/sso"


class SsoHandoff:
    """Single-use handoff between the browser redirect and the login step.

    Usage::

        handoff = SsoHandoff()
        await handoff.start()
        try:
            open_url(transport.sso_redirect_url(handoff.url))
            token = await handoff.wait()
        finally:
            await handoff.release()
    """

    def __init__(self, host: str = "127.0.0.1", timeout: float = 300.0):
        self.host = host
        self.timeout = timeout
        self.url = ""
        self.released = False
        self._result: asyncio.Future[str] | None = None
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Bind a random local port and start serving the callback."""
        self._result = asyncio.get_running_loop().create_future()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((self.host, 0))
        except OSError:
            sock.close()
            raise
        port = sock.getsockname()[1]

        app = web.Application()
        app.router.add_get(CALLBACK_PATH, self._handle_callback)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        await web.SockSite(self._runner, sock).start()

        self.url = f"http://{self.host}:{port}{CALLBACK_PATH}"
        logger.debug("Listening for SSO callback on %s", self.url)

    def deliver_token(self, token: str) -> bool:
        """Complete the handoff with ``token``. Returns ``False`` if already done."""
        if self._result is None or self._result.done():
            return False
        self._result.set_result(token)
        return True

    def fail(self, reason: str = "") -> bool:
        """Complete the handoff with a failure. Returns ``False`` if already done."""
        if self._result is None or self._result.done():
            return False
        self._result.set_exception(SsoFailed(reason or None))
        return True

    async def wait(self) -> str:
        """Wait for the login token.

        Raises:
            SsoFailed: The handoff failed, timed out or was never started.
        """
        if self._result is None:
            raise SsoFailed()
        try:
            return await asyncio.wait_for(self._result, self.timeout)
        except asyncio.TimeoutError as e:
            raise SsoFailed("SSO login timed out") from e

    async def release(self) -> None:
        if self.released:
            logger.warning("SSO handoff %s released twice", self.url or "(unbound)")
            return
        self.released = True

        if self._result is not None and not self._result.done():
            self._result.cancel()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        logger.debug("Released SSO handoff %s", self.url or "(unbound)")

    async def _handle_callback(self, request: web.Request) -> web.Response:
        token = request.query.get("loginToken", "")
        if not token:
            self.fail()
            return web.Response(status=400, text="SSO login failed.")

        self.deliver_token(token)
        return web.Response(
            text="SSO login successful. You can close this window now."
        )
