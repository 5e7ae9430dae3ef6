"""
Single-provider invocation with its own deadline.

Provider failures never escape this module: they are logged, counted in the
failure tracker and returned as part of the outcome.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from models.captcha_result import CaptchaAnswer, CaptchaRequest
from solvers.base import CaptchaProvider
from utils.errors import ProviderError, ProviderTimeoutError
from utils.failure_tracker import FailureTracker

logger = logging.getLogger(__name__)


@dataclass
class InvocationOutcome:
    """Result of calling one provider: exactly one of answer / error is set."""
    provider: CaptchaProvider
    elapsed: float
    answer: Optional[CaptchaAnswer] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.answer is not None


async def invoke_provider(
    provider: CaptchaProvider,
    request: CaptchaRequest,
    timeout: float,
    tracker: FailureTracker,
) -> InvocationOutcome:
    """
    Call one provider under a deadline scoped to this call only.

    On success the tracker is left untouched. On timeout or any other error the
    provider's failure count goes up by one. Cancellation from the caller
    (an abandoned round) is propagated and not counted as a failure.
    """
    start = time.monotonic()
    try:
        answer = await asyncio.wait_for(provider.solve(request.image, request.sensitivity), timeout=timeout)
    except asyncio.TimeoutError:
        error = ProviderTimeoutError(provider.name, f"No answer within {timeout:.1f}s")
    except asyncio.CancelledError:
        raise
    except ProviderError as e:
        error = e
    except Exception as e:
        error = ProviderError(provider.name, f"{type(e).__name__}: {e}")
        error.__cause__ = e
    else:
        elapsed = time.monotonic() - start
        return InvocationOutcome(
            provider=provider,
            elapsed=elapsed,
            answer=CaptchaAnswer(
                provider_name=provider.name,
                solution_text=answer.solution_text,
                elapsed=elapsed,
                external_id=answer.external_id,
            ),
        )

    elapsed = time.monotonic() - start
    count = tracker.increment_failure(provider.name)
    logger.warning(f"Provider {provider.name} failed after {elapsed:.2f}s (failures={count}): {error}")
    return InvocationOutcome(provider=provider, elapsed=elapsed, error=error)
