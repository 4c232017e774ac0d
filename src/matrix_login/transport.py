"""HTTP transport for the Matrix client-server login endpoints."""

import logging
from typing import Any, TypeVar

import httpx
from mautrix.types import LoginType
from pydantic import BaseModel

from .config import Settings, settings
from .responses import (
    DiscoveryInformation,
    LoginFlow,
    LoginFlowsResponse,
    LoginResponse,
    VersionsResponse,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class MatrixRequestError(Exception):
    """A request to the homeserver failed.

    Attributes:
        status_code: HTTP status, or 0 when no response was received.
        errcode: Matrix ``errcode`` from the error body, if any.
        error: Human readable ``error`` from the error body, or the transport
            error text when the connection failed.
        parse_error: Set when the response body could not be decoded.
    """

    def __init__(
        self,
        status_code: int = 0,
        errcode: str = "",
        error: str = "",
        parse_error: str = "",
    ):
        self.status_code = status_code
        self.errcode = errcode
        self.error = error
        self.parse_error = parse_error
        super().__init__(
            f"{status_code} {errcode or '-'}: {error or parse_error or 'request failed'}"
        )


def normalize_server(server: str) -> str:
    """Return ``server`` as a URL, defaulting to https for bare hosts."""
    server = server.strip().rstrip("/")
    if not server.startswith(("http://", "https://")):
        server = f"https://{server}"
    return server


class MatrixTransport:
    """Issues the login-related client-server API requests.

    The server a request targets is read when the request starts, so
    ``set_server`` never redirects a request that is already in flight.
    """

    def __init__(self, config: Settings = settings):
        self.config = config
        self.server = ""
        self.verify_certificates = not config.disable_certificate_validation

    def set_server(self, server: str) -> None:
        self.server = server

    def set_certificate_validation(self, enabled: bool) -> None:
        self.verify_certificates = enabled

    @property
    def base_url(self) -> str:
        return normalize_server(self.server)

    async def well_known(self) -> DiscoveryInformation:
        """Fetch ``/.well-known/matrix/client`` from the current server."""
        url = f"{self.base_url}/.well-known/matrix/client"
        data = await self._request(
            "GET", url, timeout=self.config.well_known_timeout
        )
        return self._parse(DiscoveryInformation, data)

    async def versions(self) -> VersionsResponse:
        data = await self._request("GET", f"{self.base_url}/_matrix/client/versions")
        return self._parse(VersionsResponse, data)

    async def login_flows(self) -> list[LoginFlow]:
        data = await self._request("GET", f"{self.base_url}/_matrix/client/v3/login")
        return self._parse(LoginFlowsResponse, data).flows

    async def login_password(
        self, user: str, password: str, device_name: str
    ) -> LoginResponse:
        """Log in with ``m.login.password``.

        Args:
            user: Localpart or full user ID.
            password: User password.
            device_name: Display name for the new device.
        """
        return await self._login(
            {
                "type": LoginType.PASSWORD.value,
                "identifier": {"type": "m.id.user", "user": user},
                "password": password,
                "initial_device_display_name": device_name,
            }
        )

    async def login_token(self, token: str, device_id: str) -> LoginResponse:
        """Log in with the ``m.login.token`` delivered by an SSO redirect."""
        return await self._login(
            {
                "type": LoginType.TOKEN.value,
                "token": token,
                "device_id": device_id,
            }
        )

    def sso_redirect_url(self, callback_url: str) -> str:
        """URL that starts SSO and redirects back to ``callback_url``."""
        try:
            url = httpx.URL(
                f"{self.base_url}/_matrix/client/v3/login/sso/redirect",
                params={"redirectUrl": callback_url},
            )
        except httpx.InvalidURL as e:
            raise MatrixRequestError(error=str(e)) from e
        return str(url)

    async def _login(self, body: dict[str, Any]) -> LoginResponse:
        data = await self._request(
            "POST", f"{self.base_url}/_matrix/client/v3/login", json=body
        )
        return self._parse(LoginResponse, data)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        async with httpx.AsyncClient(
            verify=self.verify_certificates, follow_redirects=True
        ) as client:
            try:
                resp = await client.request(
                    method,
                    url,
                    json=json,
                    timeout=timeout or self.config.request_timeout,
                )
            # InvalidURL is not an HTTPError; raised for hosts like "[::1"
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.debug("%s %s failed: %r", method, url, e)
                raise MatrixRequestError(error=str(e) or type(e).__name__) from e

        if resp.is_success:
            try:
                return resp.json()
            except ValueError as e:
                raise MatrixRequestError(
                    status_code=resp.status_code, parse_error=str(e)
                ) from e

        errcode, error = "", ""
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            errcode = str(body.get("errcode") or "")
            error = str(body.get("error") or "")
        raise MatrixRequestError(
            status_code=resp.status_code, errcode=errcode, error=error
        )

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValueError as e:
            raise MatrixRequestError(status_code=200, parse_error=str(e)) from e
