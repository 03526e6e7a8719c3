"""Error taxonomy for the carbon-intensity engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class CarbonIntensityError(Exception):
    kind = "error"


class ValidationError(CarbonIntensityError):
    """Malformed interval data, an oversized window or an interval without samples."""

    kind = "validation"

    def __init__(
        self,
        detail: str,
        index: Optional[int] = None,
        field: Optional[str] = None,
    ) -> None:
        self.detail = detail
        self.index = index
        self.field = field
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.index is not None:
            location.append(f"input[{self.index}]")
        if self.field is not None:
            location.append(f"'{self.field}'")
        if location:
            return f"{' '.join(location)}: {self.detail}"
        return self.detail


class AuthenticationError(CarbonIntensityError):
    kind = "authentication"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class UpstreamError(CarbonIntensityError):
    kind = "upstream"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Outcome of one pipeline step: either a value or the error that stopped it."""

    value: Optional[T] = None
    error: Optional[CarbonIntensityError] = None

    @classmethod
    def ok(cls, value: T) -> "StepResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: CarbonIntensityError) -> "StepResult[T]":
        return cls(error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
