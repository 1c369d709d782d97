from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

ResultValue = Union[float, str]


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class ErrorKind(str, Enum):
    MISSING_INPUT = "MissingInput"
    TAG_NOT_FOUND = "TagNotFound"
    INVALID_VALUE = "InvalidValue"
    MULTIPLE_VALUES = "MultipleValuesNotAllowed"
    INVALID_INTERVAL = "InvalidInterval"
    NO_DATA = "NoData"
    NO_MATCH = "NoMatch"
    INVALID_COMPUTATION = "InvalidComputation"
    UNKNOWN_KIND = "UnknownFunctionKind"
    # Unexpected failure inside the engine or a store; never an empty window
    INTERNAL = "InternalError"


class FunctionError(Exception):
    """Raised inside the engine; converted to an error result at the evaluator boundary."""

    def __init__(self, kind: ErrorKind, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail


@dataclass(frozen=True)
class Reading:
    device_id: str
    timestamp: datetime
    temperature: float
    humidity: float


@dataclass(frozen=True)
class FunctionResult:
    status: RunStatus
    message: str
    value: Optional[ResultValue] = None
    detail: Optional[str] = None
    error: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.SUCCESS

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "message": self.message,
            "value": self.value,
            "detail": self.detail,
            "error": self.error.value if self.error else None,
        }


@dataclass(frozen=True)
class ResolvedWindow:
    start: datetime
    end: datetime
    locations: tuple[str, ...]
    readings: tuple[Reading, ...] = ()
    query_info: str = ""

    def matched(self) -> list[Reading]:
        wanted = set(self.locations)
        return [r for r in self.readings if r.device_id in wanted]


@dataclass(frozen=True)
class Computation:
    """Unrounded algorithm output, before the formatter applies precision."""
    value: ResultValue
    # "{value}" in a line is replaced by the rounded, rendered value
    lines: list[str] = field(default_factory=list)
    places: Optional[int] = None
    prefix: str = ""
