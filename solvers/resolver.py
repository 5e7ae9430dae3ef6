"""
CAPTCHA resolver: races every eligible provider and decides which answer to trust.

One resolve() call runs up to max_retries rounds. In each round all eligible
providers are called concurrently and answers are handled in the order they
arrive:

1. Two or more identical answers → accept immediately (consensus)
2. A single answer from a provider with trust >= threshold, while no accepted
   answer has ever been reported wrong → accept immediately (trusted)
3. Otherwise keep it; once every provider has finished, pick the candidate
   with the fewest failures, then highest trust, then fastest (fallback)

Pending provider calls are cancelled as soon as an answer is accepted.
Failure counts and the degraded-trust flag live in an injected FailureTracker
and outlive single calls.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from config import AppSettings, settings
from models.acceptance import AcceptanceDecision, AcceptanceThresholds, classify_answer, fallback_sort_key
from models.captcha_result import AcceptanceReason, CaptchaAnswer, CaptchaRequest, ResolutionResult
from solvers.base import CaptchaProvider
from solvers.invoker import invoke_provider
from solvers.registry import build_providers
from utils.errors import (
    InvalidInputError,
    ResolutionExhaustedError,
    ResolverConfigError,
    RoundExhaustedError,
)
from utils.failure_tracker import FailureTracker

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_SOLVE_TIMEOUT = 70.0
DEFAULT_RETRY_BACKOFF = 1.5

_ACCEPTED_BY = {
    AcceptanceDecision.ACCEPT_CONSENSUS: AcceptanceReason.CONSENSUS,
    AcceptanceDecision.ACCEPT_TRUSTED: AcceptanceReason.TRUSTED,
}


class CaptchaResolver:
    """
    Resolves image CAPTCHAs through several unreliable solving services.

    Usage:
        async with CaptchaResolver(providers, max_retries=3) as resolver:
            result = await resolver.resolve(image_bytes)
            ...
            await resolver.report_wrong(result.provider_name, result.external_id)
    """

    def __init__(
        self,
        providers: List[CaptchaProvider],
        max_retries: int = DEFAULT_MAX_RETRIES,
        solve_timeout: float = DEFAULT_SOLVE_TIMEOUT,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        tracker: Optional[FailureTracker] = None,
        thresholds: Optional[AcceptanceThresholds] = None,
    ):
        if not providers:
            raise ResolverConfigError("At least one CAPTCHA provider must be configured")
        names = [p.name for p in providers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ResolverConfigError(f"Provider names must be unique, duplicated: {duplicates}")
        if max_retries < 1:
            raise ResolverConfigError(f"max_retries must be at least 1, got {max_retries}")
        if solve_timeout <= 0:
            raise ResolverConfigError(f"solve_timeout must be positive, got {solve_timeout}")
        if retry_backoff < 0:
            raise ResolverConfigError(f"retry_backoff must not be negative, got {retry_backoff}")

        self.providers = list(providers)
        self.max_retries = max_retries
        self.solve_timeout = solve_timeout
        self.retry_backoff = retry_backoff
        self.tracker = tracker or FailureTracker()
        self.thresholds = thresholds or AcceptanceThresholds()
        self._providers_by_name: Dict[str, CaptchaProvider] = {p.name: p for p in self.providers}

    @classmethod
    def from_settings(
        cls,
        app_settings: Optional[AppSettings] = None,
        providers: Optional[List[CaptchaProvider]] = None,
        tracker: Optional[FailureTracker] = None,
    ) -> "CaptchaResolver":
        """Build a resolver from settings, creating providers from configured credentials."""
        app_settings = app_settings or settings
        if providers is None:
            providers = build_providers(app_settings)
        return cls(
            providers,
            max_retries=app_settings.max_retries,
            solve_timeout=app_settings.solve_timeout_seconds,
            retry_backoff=app_settings.retry_backoff_seconds,
            tracker=tracker,
            thresholds=AcceptanceThresholds(
                trust_threshold=app_settings.trust_threshold,
                exclusion_failures=app_settings.max_provider_failures,
            ),
        )

    async def __aenter__(self) -> "CaptchaResolver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()

    def active_providers(self) -> List[CaptchaProvider]:
        """
        Providers eligible for the next round.
        When every provider is excluded, all counters are reset and everyone is eligible again.
        """
        limit = self.thresholds.exclusion_failures
        eligible = [p for p in self.providers if self.tracker.get_failure_count(p.name) < limit]
        if not eligible:
            logger.warning(f"All providers excluded after {limit} failures each, resetting counters")
            self.tracker.reset_all()
            eligible = list(self.providers)
        return eligible

    async def resolve(self, image: bytes, sensitivity: bool = False) -> ResolutionResult:
        """
        Resolve one CAPTCHA image.

        Raises:
            InvalidInputError: Empty image; raised before any provider is called
            ResolutionExhaustedError: No round produced an answer
        """
        try:
            request = CaptchaRequest(image=image, sensitivity=sensitivity)
        except ValidationError as e:
            raise InvalidInputError("A non-empty image payload is required") from e

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self.run_round(request, attempt)
            except RoundExhaustedError as e:
                logger.warning(f"Attempt {attempt}/{self.max_retries} failed: {e}")
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_backoff)

        raise ResolutionExhaustedError(self.max_retries)

    async def run_round(self, request: CaptchaRequest, attempt: int = 1) -> ResolutionResult:
        """
        Race all eligible providers once.

        Raises:
            RoundExhaustedError: Every provider in the round failed
        """
        providers = self.active_providers()
        logger.debug(f"Round {attempt} with providers {[p.name for p in providers]}")

        tasks = [
            asyncio.create_task(
                invoke_provider(p, request, self.solve_timeout, self.tracker),
                name=f"captcha-{p.name}",
            )
            for p in providers
        ]
        group_sizes: Dict[str, int] = {}
        candidates: List[CaptchaAnswer] = []

        try:
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                if not outcome.ok:
                    continue

                answer = outcome.answer
                group_sizes[answer.solution_text] = group_sizes.get(answer.solution_text, 0) + 1
                decision, reason = classify_answer(
                    group_sizes[answer.solution_text],
                    outcome.provider.trust,
                    self.tracker.is_degraded(),
                    self.thresholds,
                )
                if decision is AcceptanceDecision.HOLD:
                    logger.debug(f"Holding {answer.provider_name} answer: {reason}")
                    candidates.append(answer)
                    continue

                logger.info(
                    f"Accepted '{answer.solution_text}' from {answer.provider_name} "
                    f"in {answer.elapsed:.2f}s ({reason})"
                )
                return ResolutionResult.from_answer(answer, _ACCEPTED_BY[decision], attempt)
        finally:
            await self._cancel_pending(tasks)

        if not candidates:
            raise RoundExhaustedError(attempt, [p.name for p in providers])

        trust_by_name = {p.name: p.trust for p in providers}
        best = min(
            candidates,
            key=lambda a: fallback_sort_key(
                a, self.tracker.get_failure_count(a.provider_name), trust_by_name[a.provider_name]
            ),
        )
        logger.info(
            f"Fallback => {best.provider_name} (trust={trust_by_name[best.provider_name]}), "
            f"'{best.solution_text}' in {best.elapsed:.2f}s"
        )
        return ResolutionResult.from_answer(best, AcceptanceReason.FALLBACK, attempt)

    async def report_wrong(self, provider_name: str, external_id: str) -> None:
        """
        Record that an answer returned earlier was wrong.

        Disables trusted single-answer acceptance for the lifetime of the tracker,
        forwards the report to the provider and counts a failure against it.
        Errors from the provider's reporting endpoint are logged, never raised.
        """
        self.tracker.mark_degraded()

        provider = self._providers_by_name.get(provider_name)
        if provider is None:
            logger.warning(f"Wrong-answer report for unknown provider {provider_name}, ignoring")
            return

        try:
            await provider.report_wrong(external_id)
        except Exception as e:
            logger.error(f"Reporting id={external_id} to {provider_name} failed: {e}")

        count = self.tracker.increment_failure(provider_name)
        logger.info(f"Wrong answer reported for {provider_name} (failures={count})")

    @staticmethod
    async def _cancel_pending(tasks: List[asyncio.Task]) -> None:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
