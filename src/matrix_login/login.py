"""Password and SSO login, and turning a login response into a session."""

import logging
from collections.abc import Callable

from .errors import EmptyPassword, LoginRejected, SsoFailed
from .identifiers import Identifier
from .responses import LoginResponse
from .sso import SsoHandoff
from .state import Session
from .transport import MatrixRequestError, MatrixTransport, normalize_server

logger = logging.getLogger(__name__)


class LoginExecutor:
    """Runs one login flow against the transport's current server.

    Args:
        transport: Transport pointed at a resolved homeserver.
        open_url: Opens a URL in the user's browser. Fire and forget.
        default_device_name: Used when the caller's device name is blank.
        handoff_factory: Creates the SSO handoff for each SSO attempt.
    """

    def __init__(
        self,
        transport: MatrixTransport,
        open_url: Callable[[str], object],
        default_device_name: str,
        handoff_factory: Callable[[], SsoHandoff] = SsoHandoff,
    ):
        self.transport = transport
        self.open_url = open_url
        self.default_device_name = default_device_name
        self.handoff_factory = handoff_factory
        self.active_handoff: SsoHandoff | None = None

    def _device_name(self, device_name: str) -> str:
        return device_name.strip() or self.default_device_name

    async def login_with_password(
        self, identifier: Identifier, password: str, device_name: str = ""
    ) -> LoginResponse:
        """Log in with a password.

        Raises:
            EmptyPassword: ``password`` is empty. No request is sent.
            LoginRejected: The server refused the login.
        """
        if not password:
            raise EmptyPassword()

        try:
            return await self.transport.login_password(
                identifier.localpart, password, self._device_name(device_name)
            )
        except MatrixRequestError as e:
            raise LoginRejected(e.error or e.parse_error or str(e)) from e

    async def login_with_sso(
        self, identifier: Identifier, device_name: str = ""
    ) -> LoginResponse:
        """Log in through the server's SSO redirect.

        Opens the browser on the redirect URL and waits for the login token
        to arrive on a local callback. The handoff is released exactly once
        whatever the outcome.

        Raises:
            SsoFailed: The handoff failed or the token login was refused.
        """
        handoff = self.handoff_factory()
        self.active_handoff = handoff
        try:
            try:
                await handoff.start()
            except OSError as e:
                raise SsoFailed(f"Could not listen for the SSO callback: {e}") from e

            logger.debug("Starting SSO login for %s", identifier)
            try:
                redirect_url = self.transport.sso_redirect_url(handoff.url)
            except MatrixRequestError as e:
                raise SsoFailed(e.error or None) from e
            self.open_url(redirect_url)
            token = await handoff.wait()

            try:
                return await self.transport.login_token(
                    token, self._device_name(device_name)
                )
            except MatrixRequestError as e:
                raise SsoFailed(e.error or None) from e
        finally:
            if self.active_handoff is handoff:
                self.active_handoff = None
            await handoff.release()

    def abandon_sso(self, reason: str = "superseded") -> None:
        """Fail the SSO handoff in progress, if any.

        The SSO login step waiting on it releases the handoff itself.
        """
        if self.active_handoff is not None:
            logger.debug("Abandoning SSO handoff: %s", reason)
            self.active_handoff.fail(reason)


class SessionFinalizer:
    def __init__(self, transport: MatrixTransport):
        self.transport = transport

    def finalize(self, response: LoginResponse, base_url: str) -> Session:
        """Build the session, honouring a server-preferred base URL.

        A ``well_known`` hint in the login response replaces ``base_url`` and
        is applied to the transport for subsequent requests. It is not probed.
        """
        if response.well_known is not None:
            base_url = response.well_known.homeserver.base_url.rstrip("/")
            self.transport.set_server(base_url)
            logger.info("Login requested to user server: %s", base_url)

        return Session(
            user_id=response.user_id,
            device_id=response.device_id,
            access_token=response.access_token,
            homeserver_base_url=normalize_server(base_url),
        )
