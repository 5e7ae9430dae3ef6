"""
Error taxonomy for CAPTCHA resolution.

Only InvalidInputError, ResolverConfigError and ResolutionExhaustedError ever
reach a caller of the resolver. Provider-level errors are absorbed by the
invoker and turned into failure counts.
"""

from typing import Optional


class CaptchaError(Exception):
    """Base class for every error raised by this package."""


class InvalidInputError(CaptchaError, ValueError):
    """The image payload is empty or otherwise unusable."""


class ResolverConfigError(CaptchaError, ValueError):
    """The resolver was built with an invalid configuration."""


class ProviderError(CaptchaError):
    """A single provider call failed (network, malformed response, declared error)."""

    def __init__(self, provider_name: str, message: str):
        super().__init__(f"[{provider_name}] {message}")
        self.provider_name = provider_name


class ProviderTimeoutError(ProviderError):
    """A provider did not answer before its deadline."""


class RoundExhaustedError(CaptchaError):
    """Every eligible provider in one round failed."""

    def __init__(self, attempt: int, providers: Optional[list] = None):
        names = ", ".join(providers or [])
        super().__init__(f"No provider produced an answer in round {attempt} ({names})")
        self.attempt = attempt
        self.providers = providers or []


class ResolutionExhaustedError(CaptchaError):
    """No round produced a usable answer across all attempts."""

    def __init__(self, attempts: int):
        super().__init__(f"No provider returned a usable answer across {attempts} attempt(s)")
        self.attempts = attempts
