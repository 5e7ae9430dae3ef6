"""
Builds the configured provider list from settings.
A provider is included only when its credentials are present.
"""

import logging
from typing import List, Optional

import httpx

from config import AppSettings
from solvers.base import CaptchaProvider
from solvers.best_captcha import BestCaptchaSolverProvider
from solvers.gemini import GeminiProvider
from solvers.task_api import AntiCaptchaProvider, CapMonsterProvider
from solvers.two_captcha import TwoCaptchaProvider

logger = logging.getLogger(__name__)


def build_providers(app_settings: AppSettings, client: Optional[httpx.AsyncClient] = None) -> List[CaptchaProvider]:
    """
    Instantiate every provider with credentials in the settings.

    Args:
        app_settings: Loaded settings
        client: Optional shared HTTP client; each provider creates its own otherwise

    Returns:
        Providers in a stable order (most trusted services first)
    """
    polling = {
        "client": client,
        "polling_interval": app_settings.polling_interval_seconds,
        "max_wait": app_settings.provider_max_wait_seconds,
    }
    providers: List[CaptchaProvider] = []

    if app_settings.anti_captcha_client_keys:
        providers.append(AntiCaptchaProvider(app_settings.anti_captcha_client_keys, **polling))
    if app_settings.two_captcha_api_keys:
        providers.append(TwoCaptchaProvider(app_settings.two_captcha_api_keys, **polling))
    if app_settings.best_captcha_solver_tokens:
        providers.append(BestCaptchaSolverProvider(app_settings.best_captcha_solver_tokens, **polling))
    if app_settings.capmonster_api_key:
        providers.append(CapMonsterProvider(app_settings.capmonster_api_key, **polling))
    if app_settings.gemini_api_key:
        providers.append(GeminiProvider(app_settings.gemini_api_key, model_name=app_settings.gemini_model_name))

    logger.info(f"Configured providers: {[p.name for p in providers]}")
    return providers
