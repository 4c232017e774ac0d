"""Drives a login from a typed Matrix ID to an authenticated session.

``LoginController`` owns the ``NegotiationState`` and is the only thing that
mutates it. All of its coroutines run on one event loop, so state changes
never interleave; the awaits on the network are the only places where a newer
attempt can overtake an older one. Every such await is followed by a
generation check, and a step whose generation is no longer current returns
without touching the state or emitting anything.
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import replace
from functools import partial

from .config import Settings, settings
from .errors import LoginNegotiationError
from .events import (
    ErrorOccurred,
    EventEmitter,
    HomeserverChanged,
    LoggingInChanged,
    LookingUpChanged,
    VersionLookedUp,
)
from .identifiers import Identifier, parse_user_id
from .login import LoginExecutor, SessionFinalizer
from .probe import CapabilityProbe
from .resolver import HomeserverResolver
from .responses import LoginResponse
from .sso import SsoHandoff
from .state import (
    HomeserverConfig,
    LoginFlowSet,
    LoginMethod,
    NegotiationError,
    NegotiationSnapshot,
    NegotiationState,
    Phase,
    Session,
)
from .transport import MatrixTransport

logger = logging.getLogger(__name__)

SessionOwner = Callable[[Session], object]


class LoginController:
    def __init__(
        self,
        transport: MatrixTransport,
        open_url: Callable[[str], object],
        session_owner: SessionOwner | None = None,
        config: Settings = settings,
        handoff_factory: Callable[[], SsoHandoff] | None = None,
    ):
        self.transport = transport
        self.config = config
        self.session_owner = session_owner
        self.events = EventEmitter()
        self.state = NegotiationState()

        self.resolver = HomeserverResolver(transport)
        self.probe = CapabilityProbe(transport)
        self.executor = LoginExecutor(
            transport,
            open_url=open_url,
            default_device_name=config.initial_device_name,
            handoff_factory=handoff_factory
            or partial(
                SsoHandoff, host=config.sso_callback_host, timeout=config.sso_timeout
            ),
        )
        self.finalizer = SessionFinalizer(transport)

        self._raw_user_id = ""

    @property
    def user_id(self) -> str:
        return self._raw_user_id

    def snapshot(self) -> NegotiationSnapshot:
        return self.state.snapshot()

    # -- input ----------------------------------------------------------------

    def set_user_id(self, raw: str) -> None:
        """Record the Matrix ID as typed. Supersedes anything in flight."""
        if raw == self._raw_user_id:
            return
        self._raw_user_id = raw
        self._supersede()

    async def user_id_entered(self) -> LoginFlowSet | None:
        """Resolve and probe the homeserver of the recorded Matrix ID.

        Returns the login flows, or ``None`` if the attempt failed or was
        superseded. Failures are reported through ``events``.
        """
        generation = self._supersede()
        self._clear_error()
        self._set_phase(Phase.PARSING_IDENTIFIER)
        if self.state.homeserver.validated:
            self._set_homeserver(replace(self.state.homeserver, validated=False))

        try:
            user = parse_user_id(self._raw_user_id)
        except LoginNegotiationError as e:
            self._fail(e)
            return None
        logger.debug("hostname: %s", user.domain)

        self._set_phase(Phase.RESOLVING)
        self._set_looking_up(True)
        self.state.homeserver_needed = False
        disabled = self.config.disable_certificate_validation
        self.transport.set_certificate_validation(not disabled)
        self._restart_homeserver(user.domain, certificate_validation_disabled=disabled)

        try:
            resolved = await self.resolver.resolve(user.domain)
        except LoginNegotiationError as e:
            if self._is_stale(generation, "autodiscovery"):
                return None
            self.state.homeserver_needed = True
            self._fail(e)
            return None
        if self._is_stale(generation, "autodiscovery"):
            return None

        if resolved.discovered:
            self.transport.set_server(resolved.base_url)
            self._set_homeserver(
                replace(self.state.homeserver, base_url=resolved.base_url)
            )

        return await self._check_homeserver(generation)

    async def set_homeserver(self, base_url: str) -> LoginFlowSet | None:
        """Use ``base_url`` as the homeserver, skipping autodiscovery."""
        if base_url == self.state.homeserver.base_url:
            return self.state.flows if self.state.homeserver.validated else None

        generation = self._supersede()
        self._clear_error()
        self._set_looking_up(True)
        self._restart_homeserver(
            base_url,
            certificate_validation_disabled=self.config.disable_certificate_validation,
        )
        return await self._check_homeserver(generation)

    # -- steps ----------------------------------------------------------------

    async def _check_homeserver(self, generation: int) -> LoginFlowSet | None:
        self._set_phase(Phase.PROBING)

        # The Matrix ID may have been edited while autodiscovery ran
        try:
            parse_user_id(self._raw_user_id)
        except LoginNegotiationError as e:
            self._fail(e)
            return None

        try:
            flows = await self.probe.probe()
        except LoginNegotiationError as e:
            if self._is_stale(generation, "version check"):
                return None
            self.state.homeserver_needed = True
            self._fail(e)
            self._set_homeserver(replace(self.state.homeserver, validated=False))
            return None
        if self._is_stale(generation, "version check"):
            return None

        self.state.flows = flows
        self.state.homeserver_needed = False
        self._set_looking_up(False)
        self._set_homeserver(replace(self.state.homeserver, validated=True))
        self._set_phase(Phase.FLOWS_READY)
        self.events.emit(VersionLookedUp(flows))
        return flows

    async def login(
        self,
        method: LoginMethod,
        password: str = "",
        device_name: str = "",
    ) -> Session | None:
        """Log in as the recorded Matrix ID.

        Returns the session, which has also been handed to the session owner,
        or ``None`` if the login failed or was superseded.
        """
        if self.state.logging_in:
            logger.warning("Login already in progress, ignoring %s login", method.value)
            return None

        generation = self.state.generation
        self._clear_error()
        try:
            user = parse_user_id(self._raw_user_id)
        except LoginNegotiationError as e:
            self._fail(e)
            return None

        self._set_phase(Phase.LOGGING_IN)
        self._set_logging_in(True)
        try:
            response = await self._run_login(method, user, password, device_name)
        except LoginNegotiationError as e:
            if self._is_stale(generation, f"{method.value} login"):
                return None
            self._fail(e)
            return None
        except BaseException:
            # open_url failures and cancellation must not leave logging_in set
            if not self._is_stale(generation, f"{method.value} login"):
                self._set_logging_in(False)
                self._set_phase(Phase.IDLE)
            raise
        if self._is_stale(generation, f"{method.value} login"):
            return None

        session = self.finalizer.finalize(response, self.state.homeserver.base_url)
        if response.well_known is not None:
            # Adopted without a version check, so not validated
            self._set_homeserver(
                replace(
                    self.state.homeserver,
                    base_url=session.homeserver_base_url,
                    validated=False,
                )
            )

        self._set_logging_in(False)
        self._set_phase(Phase.AUTHENTICATED)
        logger.info("Logged in as %s on device %s", session.user_id, session.device_id)

        if self.session_owner is not None:
            result = self.session_owner(session)
            if inspect.isawaitable(result):
                await result
        return session

    async def _run_login(
        self, method: LoginMethod, user: Identifier, password: str, device_name: str
    ) -> LoginResponse:
        if method is LoginMethod.PASSWORD:
            return await self.executor.login_with_password(user, password, device_name)
        return await self.executor.login_with_sso(user, device_name)

    def acknowledge_error(self) -> None:
        """Clear the current error and return to idle."""
        self._clear_error()
        if self.state.phase is Phase.ERROR:
            self._set_phase(Phase.IDLE)

    # -- state helpers --------------------------------------------------------

    def _supersede(self) -> int:
        """Start a new attempt; results of older ones will be dropped."""
        self.state.generation += 1
        self.executor.abandon_sso()
        if self.state.phase is not Phase.ERROR:
            self._set_phase(Phase.IDLE)
        self._set_looking_up(False)
        self._set_logging_in(False)
        return self.state.generation

    def _is_stale(self, generation: int, step: str) -> bool:
        if generation == self.state.generation:
            return False
        logger.debug(
            "Dropping %s result from attempt %d (now at %d)",
            step,
            generation,
            self.state.generation,
        )
        return True

    def _fail(self, error: LoginNegotiationError) -> None:
        self._set_logging_in(False)
        self._set_looking_up(False)
        self.state.error = NegotiationError.from_exception(error)
        self._set_phase(Phase.ERROR)
        self.events.emit(ErrorOccurred(kind=error.kind, message=error.message))

    def _clear_error(self) -> None:
        self.state.error = None

    def _set_phase(self, phase: Phase) -> None:
        if phase is not self.state.phase:
            logger.debug("Login phase %s -> %s", self.state.phase.value, phase.value)
            self.state.phase = phase

    def _restart_homeserver(
        self, base_url: str, certificate_validation_disabled: bool
    ) -> None:
        self.transport.set_server(base_url)
        self.state.flows = None
        self._set_homeserver(
            HomeserverConfig(
                base_url=base_url,
                validated=False,
                certificate_validation_disabled=certificate_validation_disabled,
            )
        )

    def _set_homeserver(self, homeserver: HomeserverConfig) -> None:
        self.state.homeserver = homeserver
        self.events.emit(
            HomeserverChanged(base_url=homeserver.base_url, validated=homeserver.validated)
        )

    def _set_looking_up(self, looking_up: bool) -> None:
        if looking_up != self.state.looking_up:
            self.state.looking_up = looking_up
            self.events.emit(LookingUpChanged(looking_up))

    def _set_logging_in(self, logging_in: bool) -> None:
        if logging_in != self.state.logging_in:
            self.state.logging_in = logging_in
            self.events.emit(LoggingInChanged(logging_in))
