import logging
import re
import uuid

import google.generativeai as genai

from models.captcha_result import ProviderAnswer
from solvers.base import CaptchaProvider
from utils.errors import ProviderError

logger = logging.getLogger(__name__)

IMAGE_SIGNATURES = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", "image/gif"),
    (b"RIFF", "image/webp"),
]


def guess_mime_type(image: bytes) -> str:
    """Best-effort MIME type from magic bytes; PNG when unknown."""
    for signature, mime in IMAGE_SIGNATURES:
        if image.startswith(signature):
            return mime
    return "image/png"


def build_prompt(sensitivity: bool) -> str:
    prompt = (
        "This image is a text CAPTCHA. It may contain distortion or noise. "
        "Return only the characters shown, without spaces, punctuation or explanation."
    )
    if sensitivity:
        prompt += " The answer is case-sensitive: preserve upper and lower case exactly."
    return prompt


class GeminiProvider(CaptchaProvider):
    """
    Ask Gemini to read the CAPTCHA directly from the image.
    There is no reporting endpoint, so wrong-answer reports are only logged.
    """

    def __init__(self, api_key: str, model_name: str = "gemini-1.5-flash", name: str = "Gemini", trust: int = 3):
        super().__init__(name, trust)
        if not api_key:
            raise ValueError("No API key provided for Gemini")
        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(model_name)

    async def solve(self, image: bytes, sensitivity: bool = False) -> ProviderAnswer:
        parts = [build_prompt(sensitivity), {"mime_type": guess_mime_type(image), "data": image}]
        try:
            response = await self._model.generate_content_async(parts)
            text = response.text.strip()
        except ValueError as e:
            # response.text raises when the candidate was blocked or empty
            raise ProviderError(self.name, f"No usable text in response: {e}") from e

        # Keep only alphanumeric characters
        solution = re.sub(r"[^0-9A-Za-z]", "", text)
        if not solution:
            raise ProviderError(self.name, f"Empty solution from model output {text!r}")
        return ProviderAnswer(external_id=uuid.uuid4().hex, solution_text=solution)

    async def report_wrong(self, external_id: str) -> None:
        logger.info(f"[{self.name}] Answer id={external_id} reported wrong (no reporting endpoint)")
