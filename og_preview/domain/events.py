# /og_preview/domain/events.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from og_preview.domain.meta_extractor import ExtractionResult


class ErrorKind(str, Enum):
    MISSING_URL = "MissingURL"
    UNSUPPORTED_SCHEME = "UnsupportedScheme"
    TIMEOUT = "Timeout"
    TRANSPORT_ERROR = "TransportError"
    INVALID_RESPONSE = "InvalidResponse"


# ==== Errors ====


class ParserError(Exception):
    kind: ClassVar[ErrorKind]

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.__cause__ = cause


class MissingURLError(ParserError):
    kind = ErrorKind.MISSING_URL


class UnsupportedSchemeError(ParserError):
    kind = ErrorKind.UNSUPPORTED_SCHEME


class RequestTimeoutError(ParserError):
    kind = ErrorKind.TIMEOUT


class TransportError(ParserError):
    kind = ErrorKind.TRANSPORT_ERROR


class InvalidResponseError(ParserError):
    kind = ErrorKind.INVALID_RESPONSE

    def __init__(self, message: str, *, status: int | None, content_type: str | None) -> None:
        super().__init__(message)
        self.status = status
        self.content_type = content_type


# ==== Events ====


@dataclass(frozen=True, slots=True)
class Started:
    name: ClassVar[str] = "started"
    url: str


@dataclass(frozen=True, slots=True)
class DataReady:
    name: ClassVar[str] = "data"
    url: str
    result: ExtractionResult


@dataclass(frozen=True, slots=True)
class Ended:
    name: ClassVar[str] = "ended"
    url: str


@dataclass(frozen=True, slots=True)
class Errored:
    name: ClassVar[str] = "error"
    url: str
    error: ParserError


ParserEvent = Started | DataReady | Ended | Errored
