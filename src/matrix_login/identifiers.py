"""Matrix ID parsing."""

from dataclasses import dataclass

from .errors import InvalidIdentifier


@dataclass(frozen=True)
class Identifier:
    """A parsed ``@localpart:domain`` user ID."""

    localpart: str
    domain: str

    def __str__(self) -> str:
        return f"@{self.localpart}:{self.domain}"


def parse_user_id(raw: str) -> Identifier:
    """Split a user ID into localpart and domain.

    The domain is everything after the first ``:`` following the leading
    ``@``, so ports (``@joe:example.org:8448``) stay part of the domain.

    Raises:
        InvalidIdentifier: If ``raw`` is not of the form ``@localpart:domain``
            with both parts non-empty.
    """
    if not raw.startswith("@"):
        raise InvalidIdentifier()

    localpart, sep, domain = raw[1:].partition(":")
    if not sep or not localpart or not domain:
        raise InvalidIdentifier()

    return Identifier(localpart=localpart, domain=domain)
