"""Identity resolution strategies.

An identity is the string a request is counted against (user id, API
token, client IP). An empty identity means no limiting applies to the
request; resolvers return ``""`` rather than raising when the value they
look for is simply absent.
"""

from __future__ import annotations

import ipaddress
from abc import ABC, abstractmethod
from typing import Iterable

from starlette.requests import HTTPConnection

from limiter.core.errors import AddressParseError, TypeMismatchError

FORWARDED_FOR_HEADER = "X-Forwarded-For"


class IdentityResolver(ABC):
    """Extracts the caller identity from a request."""

    @abstractmethod
    def resolve(self, request: HTTPConnection) -> str:
        """Return the identity for ``request`` ("" disables limiting).

        Raises:
            IdentityResolutionError: If the identity source is malformed.
        """
        raise NotImplementedError


class HeaderIdentityResolver(IdentityResolver):
    """Uses a request header verbatim; a missing header yields ``""``."""

    def __init__(self, header_name: str) -> None:
        self.header_name = header_name

    def resolve(self, request: HTTPConnection) -> str:
        return request.headers.get(self.header_name, "")

    def __repr__(self) -> str:
        return f"HeaderIdentityResolver(header_name={self.header_name!r})"


class IPIdentityResolver(IdentityResolver):
    """Uses the client IP address.

    The first entry of the forwarded-for header that parses as an IP address
    wins; unparseable entries such as ``unknown`` are skipped. Without one,
    the host part of the peer address is used.
    """

    def __init__(self, forwarded_for_header: str = FORWARDED_FOR_HEADER) -> None:
        self.forwarded_for_header = forwarded_for_header

    def resolve(self, request: HTTPConnection) -> str:
        forwarded_for = request.headers.get(self.forwarded_for_header)
        if forwarded_for:
            for entry in forwarded_for.split(","):
                try:
                    return str(ipaddress.ip_address(entry.strip()))
                except ValueError:
                    continue

        client = request.scope.get("client")
        if not client:
            raise AddressParseError(
                code="address_parse_error",
                message="Request has no peer address to derive an identity from",
            )
        return self._split_host(client)

    @staticmethod
    def _split_host(client: object) -> str:
        # ASGI servers report the peer as a (host, port) pair
        if isinstance(client, (tuple, list)) and len(client) == 2 and client[0]:
            return str(client[0])
        raise AddressParseError(
            code="address_parse_error",
            message="Peer address cannot be split into host and port",
            details={"remote_addr": repr(client)},
        )

    def __repr__(self) -> str:
        return f"IPIdentityResolver(forwarded_for_header={self.forwarded_for_header!r})"


class RequestStateIdentityResolver(IdentityResolver):
    """Reads an identity stored on ``request.state`` by upstream middleware.

    Authentication middleware typically sets e.g. ``request.state.user_id``.
    An absent attribute yields ``""``; a non-string value is an error.
    """

    def __init__(self, attribute: str) -> None:
        self.attribute = attribute

    def resolve(self, request: HTTPConnection) -> str:
        state = request.scope.get("state") or {}
        if self.attribute not in state:
            return ""
        value = state[self.attribute]
        if not isinstance(value, str):
            raise TypeMismatchError(
                code="identity_type_mismatch",
                message=f"request.state.{self.attribute} is not a string",
                details={
                    "attribute": self.attribute,
                    "actual_type": type(value).__name__,
                },
            )
        return value

    def __repr__(self) -> str:
        return f"RequestStateIdentityResolver(attribute={self.attribute!r})"


class PathExemptIdentityResolver(IdentityResolver):
    """Wraps another resolver and returns ``""`` for exempt paths.

    Health and readiness probes are commonly exempted this way: an empty
    identity makes the limiter forward the request without counting it.
    """

    def __init__(self, inner: IdentityResolver, exempt_paths: Iterable[str]) -> None:
        self.inner = inner
        self.exempt_paths = frozenset(exempt_paths)

    def resolve(self, request: HTTPConnection) -> str:
        if request.url.path in self.exempt_paths:
            return ""
        return self.inner.resolve(request)

    def __repr__(self) -> str:
        return (
            f"PathExemptIdentityResolver(inner={self.inner!r}, "
            f"exempt_paths={sorted(self.exempt_paths)!r})"
        )
