from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from infinet_ai.services.error_classifier import ErrorClass
from infinet_ai.services.llm.base import GenerationResult

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


@dataclass(frozen=True)
class GenerationOutcome:
    """Success carries the result and the 1-based tier that produced it;
    failure carries the classification (computed once) and its cause."""

    ok: bool
    result: Optional[GenerationResult] = None
    provider_tier: Optional[int] = None
    provider: Optional[str] = None
    classification: Optional[ErrorClass] = None
    cause: Optional[BaseException] = None

    @staticmethod
    def success(result: GenerationResult, provider_tier: int, provider: str) -> "GenerationOutcome":
        return GenerationOutcome(ok=True, result=result, provider_tier=provider_tier, provider=provider)

    @staticmethod
    def failure(classification: ErrorClass, cause: Optional[BaseException] = None) -> "GenerationOutcome":
        return GenerationOutcome(ok=False, classification=classification, cause=cause)

    @property
    def text(self) -> str:
        if self.ok and self.result and self.result.text:
            return self.result.text
        return ""
