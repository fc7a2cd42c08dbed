"""Exceptions raised by rest-bridge."""

from __future__ import annotations

from typing import Any


class RESTBridgeError(Exception):
    """Base class for all rest-bridge errors."""


class MappingNotFoundError(RESTBridgeError):
    """A request needs a mapping (REST path, property) that is not configured."""


class MappingConfigError(RESTBridgeError):
    """A mapping file could not be loaded."""


class QueryParamSyntaxError(RESTBridgeError, ValueError):
    """A flatified fields string is malformed."""

    def __init__(self, message: str, position: int) -> None:
        super().__init__(f"{message} (at position {position})")
        self.position = position


class RESTRequestError(RESTBridgeError):
    """The backend answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: int, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
