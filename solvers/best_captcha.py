"""BestCaptchaSolver adapter: form upload, then poll the captcha resource."""

import base64
import logging
import time
from typing import List, Optional

import httpx

from models.captcha_result import ProviderAnswer
from solvers.base import HttpCaptchaProvider
from utils.errors import ProviderError

logger = logging.getLogger(__name__)

BCS_API_URL = "https://bcsapi.xyz/api/captcha"


class BestCaptchaSolverProvider(HttpCaptchaProvider):

    def __init__(
        self,
        api_tokens: List[str],
        client: Optional[httpx.AsyncClient] = None,
        polling_interval: float = 5.0,
        max_wait: float = 120.0,
        name: str = "BestCaptchaSolver",
        trust: int = 6,
    ):
        super().__init__(name, trust, api_tokens, client, polling_interval, max_wait)

    async def solve(self, image: bytes, sensitivity: bool = False) -> ProviderAnswer:
        token = self._pick_key()
        form = {
            "access_token": token,
            "b64image": base64.b64encode(image).decode("ascii"),
        }
        if sensitivity:
            form["is_case"] = "1"

        upload = await self._request_json("POST", f"{BCS_API_URL}/image", data=form)
        if upload.get("status") != "submitted" or "id" not in upload:
            raise ProviderError(self.name, f"Upload failed: {upload}")

        captcha_id = str(upload["id"])
        self._remember_key(captcha_id, token)

        started = time.monotonic()
        while True:
            await self._wait_for_next_poll(started, captcha_id)
            check = await self._request_json(
                "GET", f"{BCS_API_URL}/{captcha_id}", params={"access_token": token}
            )
            status = check.get("status")
            if status == "completed":
                return ProviderAnswer(external_id=captcha_id, solution_text=check.get("text") or "")
            if status not in ("submitted", "pending", None):
                raise ProviderError(self.name, f"Unexpected status for id={captcha_id}: {check}")

    async def report_wrong(self, external_id: str) -> None:
        token = self._key_for(external_id)
        if token is None:
            return
        response = await self._request_json(
            "POST", f"{BCS_API_URL}/bad/{external_id}", data={"access_token": token}
        )
        logger.info(f"[{self.name}] Reported id={external_id} as wrong: {response}")
