"""Negotiation state and the values it holds."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import SecretStr

from .errors import ErrorKind, LoginNegotiationError


class Phase(str, Enum):
    IDLE = "idle"
    PARSING_IDENTIFIER = "parsing_identifier"
    RESOLVING = "resolving"
    PROBING = "probing"
    FLOWS_READY = "flows_ready"
    LOGGING_IN = "logging_in"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


class LoginMethod(str, Enum):
    PASSWORD = "password"
    SSO = "sso"


@dataclass(frozen=True)
class HomeserverConfig:
    base_url: str = ""
    validated: bool = False
    certificate_validation_disabled: bool = False


@dataclass(frozen=True)
class LoginFlowSet:
    password_supported: bool = True
    sso_supported: bool = False


@dataclass(frozen=True)
class NegotiationError:
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: LoginNegotiationError) -> "NegotiationError":
        return cls(kind=exc.kind, message=exc.message)


@dataclass(frozen=True)
class Session:
    """Credentials of a completed login, handed over to the session owner."""

    user_id: str
    device_id: str
    access_token: SecretStr
    homeserver_base_url: str


@dataclass(frozen=True)
class NegotiationSnapshot:
    generation: int
    phase: Phase
    homeserver: HomeserverConfig
    flows: LoginFlowSet | None
    looking_up: bool
    logging_in: bool
    error: NegotiationError | None
    homeserver_needed: bool


@dataclass
class NegotiationState:
    """Mutable state owned by a single ``LoginController``.

    ``generation`` only ever increases. Async steps remember the value they
    started with and must not touch anything here once it has moved on.
    """

    generation: int = 0
    phase: Phase = Phase.IDLE
    homeserver: HomeserverConfig = field(default_factory=HomeserverConfig)
    flows: LoginFlowSet | None = None
    looking_up: bool = False
    logging_in: bool = False
    error: NegotiationError | None = None
    # Set when discovery or the version check failed; ask for a server
    homeserver_needed: bool = False

    def snapshot(self) -> NegotiationSnapshot:
        return NegotiationSnapshot(
            generation=self.generation,
            phase=self.phase,
            homeserver=self.homeserver,
            flows=self.flows,
            looking_up=self.looking_up,
            logging_in=self.logging_in,
            error=self.error,
            homeserver_needed=self.homeserver_needed,
        )
