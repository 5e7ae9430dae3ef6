"""
Pydantic models for CAPTCHA resolution requests and results.
These provide strict type safety and validation - no untyped dictionaries
cross the boundary between providers and the resolver.
"""

from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class AcceptanceReason(str, Enum):
    """Enum for tracking which rule accepted the returned answer."""
    CONSENSUS = "consensus"
    TRUSTED = "trusted"
    FALLBACK = "fallback"


class CaptchaRequest(BaseModel):
    """One resolution attempt: the raw image and the case-sensitivity hint."""
    model_config = ConfigDict(frozen=True)

    image: bytes = Field(min_length=1)
    sensitivity: bool = False


class ProviderAnswer(BaseModel):
    """What a provider hands back from a successful solve."""
    external_id: str
    solution_text: str


class CaptchaAnswer(BaseModel):
    """One provider's answer for one attempt, as seen by the resolver."""
    provider_name: str
    solution_text: str
    elapsed: float = Field(ge=0.0)  # seconds
    external_id: str


class ResolutionResult(BaseModel):
    """Final answer returned to the caller."""
    provider_name: str
    solution_text: str
    elapsed: float = Field(ge=0.0)
    external_id: str
    accepted_by: AcceptanceReason
    attempt: int = Field(default=1, ge=1)

    @classmethod
    def from_answer(
        cls, answer: CaptchaAnswer, accepted_by: AcceptanceReason, attempt: int = 1
    ) -> "ResolutionResult":
        return cls(
            provider_name=answer.provider_name,
            solution_text=answer.solution_text,
            elapsed=answer.elapsed,
            external_id=answer.external_id,
            accepted_by=accepted_by,
            attempt=attempt,
        )
