"""Tier-ordered fallback across a capability's providers."""

import asyncio
import time
from dataclasses import replace
from typing import Callable, Optional

from infinet_ai.errors import CapabilityUnavailableError
from infinet_ai.logging_config import get_logger
from infinet_ai.services.error_classifier import ErrorClass, classify
from infinet_ai.services.llm.base import Capability, GenerationRequest
from infinet_ai.services.provider_pool import ProviderHandle, ProviderPool
from infinet_ai.services.result import GenerationOutcome

logger = get_logger("gateway")

DEFAULT_DEADLINE_SECONDS = 60.0


class FallbackGateway:
    """Walks the pool in tier order under one shared deadline.

    Stateless between calls: every ``generate`` starts again at tier 1.
    """

    def __init__(self, pool: ProviderPool, default_deadline_seconds: float = DEFAULT_DEADLINE_SECONDS):
        self.pool = pool
        self.default_deadline_seconds = default_deadline_seconds

    async def generate(
        self,
        capability: Capability,
        request: GenerationRequest,
        *,
        deadline_seconds: Optional[float] = None,
        accept: Optional[Callable[[ProviderHandle], bool]] = None,
    ) -> GenerationOutcome:
        handles = self.pool.handles(capability)
        if accept is not None:
            handles = tuple(handle for handle in handles if accept(handle))
        if not handles:
            logger.warning("No providers for capability", extra={"context": {"capability": capability.value}})
            return GenerationOutcome.failure(ErrorClass.FATAL, CapabilityUnavailableError(capability.value))

        budget = deadline_seconds or request.deadline_seconds or self.default_deadline_seconds
        deadline = time.monotonic() + budget
        last_class: Optional[ErrorClass] = None
        last_error: Optional[BaseException] = None
        expired = False

        for handle in handles:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                expired = True
                break

            context = {
                "capability": capability.value,
                "tier": handle.tier,
                "provider": handle.provider.name,
                "tiers_total": len(handles),
            }
            logger.info("Trying provider tier", extra={"context": context})
            started = time.monotonic()
            try:
                result = await asyncio.wait_for(
                    handle.provider.generate(replace(request), timeout_seconds=remaining),
                    timeout=remaining,
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
                last_class = classify(exc)
                logger.warning(
                    "Provider tier failed",
                    extra={
                        "context": {
                            **context,
                            "classification": last_class.value,
                            "error": str(exc)[:300],
                            "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
                        }
                    },
                )
                if last_class == ErrorClass.FATAL:
                    return GenerationOutcome.failure(ErrorClass.FATAL, exc)
                continue

            logger.info(
                "Provider tier succeeded",
                extra={"context": {**context, "elapsed_ms": round((time.monotonic() - started) * 1000, 2)}},
            )
            return GenerationOutcome.success(result, provider_tier=handle.tier, provider=handle.provider.name)

        if expired:
            logger.warning("Generation deadline expired", extra={"context": {"capability": capability.value}})
            return GenerationOutcome.failure(ErrorClass.TRANSIENT, last_error or asyncio.TimeoutError())

        classification = (
            ErrorClass.QUOTA_EXHAUSTED if last_class == ErrorClass.QUOTA_EXHAUSTED else ErrorClass.TRANSIENT
        )
        logger.error(
            "All provider tiers failed",
            extra={"context": {"capability": capability.value, "classification": classification.value}},
        )
        return GenerationOutcome.failure(classification, last_error)
