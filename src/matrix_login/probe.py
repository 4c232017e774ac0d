"""Server version and login flow discovery."""

import logging

from mautrix.types import LoginType

from .errors import VersionMalformed, VersionNotFound, VersionUnknown
from .state import LoginFlowSet
from .transport import MatrixRequestError, MatrixTransport

logger = logging.getLogger(__name__)

# Assumed when the server does not tell us which flows it supports
FALLBACK_FLOWS = LoginFlowSet(password_supported=True, sso_supported=False)


class CapabilityProbe:
    def __init__(self, transport: MatrixTransport):
        self.transport = transport

    async def probe(self) -> LoginFlowSet:
        """Check the current server speaks the client-server API and list flows.

        Raises:
            VersionNotFound: ``/versions`` returned 404.
            VersionMalformed: ``/versions`` returned an unparseable body.
            VersionUnknown: Any other ``/versions`` failure.
        """
        try:
            versions = await self.transport.versions()
        except MatrixRequestError as e:
            if e.status_code == 404:
                raise VersionNotFound() from e
            if e.parse_error:
                raise VersionMalformed() from e
            raise VersionUnknown() from e

        logger.debug("Server supports versions %s", versions.versions)

        try:
            flows = await self.transport.login_flows()
        except MatrixRequestError as e:
            logger.info("Could not list login flows, assuming password: %s", e)
            return FALLBACK_FLOWS

        if not flows:
            return FALLBACK_FLOWS

        sso_supported = False
        password_supported = False
        for flow in flows:
            if flow.type == LoginType.SSO.value:
                sso_supported = True
            elif flow.type == LoginType.PASSWORD.value:
                password_supported = True

        return LoginFlowSet(
            password_supported=password_supported, sso_supported=sso_supported
        )
