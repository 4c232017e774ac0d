import asyncio

import pytest
from pydantic import SecretStr

from matrix_login.config import Settings
from matrix_login.controller import LoginController
from matrix_login.errors import SsoFailed
from matrix_login.responses import (
    DiscoveryInformation,
    HomeserverInformation,
    LoginFlow,
    LoginResponse,
    VersionsResponse,
)
from matrix_login.transport import MatrixRequestError


def well_known(base_url: str) -> DiscoveryInformation:
    return DiscoveryInformation(homeserver=HomeserverInformation(base_url=base_url))


def login_response(
    user_id: str = "@alice:example.org", redirect: str | None = None
) -> LoginResponse:
    return LoginResponse(
        user_id=user_id,
        access_token=SecretStr("syt_token"),
        device_id="DEVICEID",
        well_known=well_known(redirect) if redirect else None,
    )


class FakeTransport:
    """Scripted stand-in for ``MatrixTransport``.

    Results are keyed by the server the request was issued against. An entry
    in ``gates`` keyed by ``(method, server)`` holds that request until the
    event is set.
    """

    def __init__(self):
        self.server = ""
        self.verify_certificates = True
        self.well_known_results = {}
        self.version_results = {}
        self.flow_results = {}
        self.login_results = {}
        self.gates = {}
        self.calls = []

    def set_server(self, server):
        self.server = server

    def set_certificate_validation(self, enabled):
        self.verify_certificates = enabled

    async def _respond(self, method, results, default):
        server = self.server
        self.calls.append((method, server))
        gate = self.gates.get((method, server))
        if gate is not None:
            await gate.wait()
        result = results.get(server, default)
        if isinstance(result, Exception):
            raise result
        return result

    async def well_known(self):
        return await self._respond(
            "well_known", self.well_known_results, MatrixRequestError(status_code=404)
        )

    async def versions(self):
        return await self._respond(
            "versions", self.version_results, VersionsResponse(versions=["v1.11"])
        )

    async def login_flows(self):
        return await self._respond(
            "login_flows", self.flow_results, [LoginFlow(type="m.login.password")]
        )

    async def login_password(self, user, password, device_name):
        self.last_login = ("password", user, password, device_name)
        return await self._respond("login", self.login_results, login_response())

    async def login_token(self, token, device_id):
        self.last_login = ("token", token, device_id)
        return await self._respond("login", self.login_results, login_response())

    def sso_redirect_url(self, callback_url):
        return f"{self.server}/sso/redirect?redirectUrl={callback_url}"


class FakeHandoff:
    """SSO handoff without a socket; counts releases."""

    instances = []

    def __init__(self):
        self.url = ""
        self.releases = 0
        self._result = None
        FakeHandoff.instances.append(self)

    async def start(self):
        self._result = asyncio.get_running_loop().create_future()
        self.url = "http://127.0.0.1:12345/sso"

    def deliver_token(self, token):
        if self._result is None or self._result.done():
            return False
        self._result.set_result(token)
        return True

    def fail(self, reason=""):
        if self._result is None or self._result.done():
            return False
        self._result.set_exception(SsoFailed(reason or None))
        return True

    async def wait(self):
        return await self._result

    async def release(self):
        self.releases += 1


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def opened_urls():
    return []


@pytest.fixture
def sessions():
    return []


@pytest.fixture
def handoffs():
    FakeHandoff.instances = []
    return FakeHandoff.instances


@pytest.fixture
def controller(transport, opened_urls, sessions, handoffs):
    config = Settings(initial_device_name="test device", _env_file=None)
    return LoginController(
        transport,
        open_url=opened_urls.append,
        session_owner=sessions.append,
        config=config,
        handoff_factory=FakeHandoff,
    )


@pytest.fixture
def events(controller):
    received = []
    controller.events.subscribe(received.append)
    return received
