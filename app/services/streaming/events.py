"""Events emitted while decoding a progressively written reply object."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from app.schemas.api import ParsedObject


class StreamErrorKind(str, Enum):
    TRANSPORT_MISSING = "TransportMissing"
    UNTERMINATED_VALUE = "UnterminatedValue"
    EXCEEDED_MAX_LENGTH = "ExceededMaxLength"
    INVALID_FINAL_JSON = "InvalidFinalJson"
    UPSTREAM_GENERATION_ERROR = "UpstreamGenerationError"


@dataclass(frozen=True)
class Delta:
    """Newly available text of the ``response`` field."""

    text: str


@dataclass(frozen=True)
class Complete:
    result: ParsedObject


@dataclass(frozen=True)
class StreamError:
    kind: StreamErrorKind
    message: str = ""


StreamEvent = Union[Delta, Complete, StreamError]


class StreamDecodeError(Exception):
    """Raised by helpers that turn an error event into an exception."""

    def __init__(self, kind: StreamErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class UpstreamGenerationError(Exception):
    """The text generation service failed before finishing a reply."""
