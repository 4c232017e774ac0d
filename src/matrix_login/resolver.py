"""Homeserver autodiscovery via ``.well-known``."""

import logging
from dataclasses import dataclass

from .errors import AutodiscoveryMalformed, AutodiscoveryUnknown
from .transport import MatrixRequestError, MatrixTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedServer:
    base_url: str
    discovered: bool


class HomeserverResolver:
    def __init__(self, transport: MatrixTransport):
        self.transport = transport

    async def resolve(self, domain: str) -> ResolvedServer:
        """Resolve the homeserver base URL for ``domain``.

        The transport must already point at ``domain``. A 404 means the
        domain does not delegate and is its own homeserver.

        Raises:
            AutodiscoveryMalformed: The well-known body could not be parsed.
            AutodiscoveryUnknown: Any other failure.
        """
        try:
            res = await self.transport.well_known()
        except MatrixRequestError as e:
            if e.status_code == 404:
                logger.info("Autodiscovery: No .well-known.")
                return ResolvedServer(base_url=domain, discovered=False)

            if e.parse_error:
                logger.error("Autodiscovery failed. Received malformed response.")
                raise AutodiscoveryMalformed() from e

            logger.error(
                "Autodiscovery failed. Unknown error when requesting .well-known. %s %s",
                e.status_code,
                e.errcode,
            )
            raise AutodiscoveryUnknown(
                status_code=e.status_code, errcode=e.errcode
            ) from e

        base_url = res.homeserver.base_url.rstrip("/")
        logger.info("Autodiscovery: Discovered '%s'", base_url)
        return ResolvedServer(base_url=base_url, discovered=True)
