"""
Acceptance rules for provider answers.
Decides, for each answer as it arrives, whether the round can stop.
"""

from enum import Enum
from typing import Optional, Tuple

from models.captcha_result import CaptchaAnswer


class AcceptanceDecision(str, Enum):
    """
    Outcome of looking at one successful answer.

    ACCEPT_CONSENSUS: Another provider already returned the same text
    ACCEPT_TRUSTED: A single high-trust provider, while trust is not degraded
    HOLD: Keep it as a fallback candidate and wait for more answers
    """
    ACCEPT_CONSENSUS = "ACCEPT_CONSENSUS"
    ACCEPT_TRUSTED = "ACCEPT_TRUSTED"
    HOLD = "HOLD"


class AcceptanceThresholds:
    """
    Thresholds for the acceptance policy and provider exclusion.
    Trust is a provider-declared rank on a 0-10 scale.
    """
    TRUST_THRESHOLD: int = 8  # >= 8 may be accepted alone
    CONSENSUS_MIN: int = 2  # identical answers needed for consensus
    EXCLUSION_FAILURES: int = 2  # failures before a provider sits out a round

    def __init__(
        self,
        trust_threshold: int = TRUST_THRESHOLD,
        consensus_min: int = CONSENSUS_MIN,
        exclusion_failures: int = EXCLUSION_FAILURES,
    ):
        self.trust_threshold = trust_threshold
        self.consensus_min = consensus_min
        self.exclusion_failures = exclusion_failures


def classify_answer(
    group_size: int,
    trust: int,
    degraded: bool,
    thresholds: Optional[AcceptanceThresholds] = None,
) -> Tuple[AcceptanceDecision, str]:
    """
    Classify an answer that just arrived.

    Rules (in priority order):
    1. group_size >= consensus minimum → ACCEPT_CONSENSUS
    2. trust not degraded and trust >= threshold → ACCEPT_TRUSTED
    3. otherwise → HOLD

    Args:
        group_size: Answers in this round sharing this exact text, including this one
        trust: Trust score of the provider that produced the answer
        degraded: Whether any accepted answer was ever reported wrong

    Returns:
        Tuple of (decision, reason)
    """
    thresholds = thresholds or AcceptanceThresholds()

    if group_size >= thresholds.consensus_min:
        return AcceptanceDecision.ACCEPT_CONSENSUS, f"{group_size} providers agree"

    if not degraded and trust >= thresholds.trust_threshold:
        return AcceptanceDecision.ACCEPT_TRUSTED, f"Trust {trust} >= {thresholds.trust_threshold}"

    if degraded:
        return AcceptanceDecision.HOLD, "Trust degraded, waiting for agreement"
    return AcceptanceDecision.HOLD, f"Trust {trust} below {thresholds.trust_threshold}"


def fallback_sort_key(answer: CaptchaAnswer, failure_count: int, trust: int) -> Tuple[int, int, float]:
    """
    Ordering for end-of-round fallback: fewest failures, then highest trust,
    then fastest.
    """
    return failure_count, -trust, answer.elapsed
