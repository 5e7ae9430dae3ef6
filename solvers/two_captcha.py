"""2Captcha adapter: legacy in.php upload and res.php polling."""

import base64
import logging
import time
from typing import List, Optional

import httpx

from models.captcha_result import ProviderAnswer
from solvers.base import HttpCaptchaProvider
from utils.errors import ProviderError

logger = logging.getLogger(__name__)

TWO_CAPTCHA_IN_URL = "https://2captcha.com/in.php"
TWO_CAPTCHA_RES_URL = "https://2captcha.com/res.php"
NOT_READY = "CAPCHA_NOT_READY"


class TwoCaptchaProvider(HttpCaptchaProvider):

    def __init__(
        self,
        api_keys: List[str],
        client: Optional[httpx.AsyncClient] = None,
        polling_interval: float = 5.0,
        max_wait: float = 120.0,
        name: str = "2Captcha",
        trust: int = 7,
    ):
        super().__init__(name, trust, api_keys, client, polling_interval, max_wait)

    async def solve(self, image: bytes, sensitivity: bool = False) -> ProviderAnswer:
        key = self._pick_key()
        form = {
            "method": "base64",
            "key": key,
            "body": base64.b64encode(image).decode("ascii"),
            "json": "1",
        }
        if sensitivity:
            form["regsense"] = "1"

        upload = await self._request_json("POST", TWO_CAPTCHA_IN_URL, data=form)
        if upload.get("status") != 1:
            raise ProviderError(self.name, f"Upload failed: {upload}")

        captcha_id = str(upload.get("request", ""))
        self._remember_key(captcha_id, key)

        started = time.monotonic()
        params = {"key": key, "action": "get", "id": captcha_id, "json": "1"}
        while True:
            await self._wait_for_next_poll(started, captcha_id)
            check = await self._request_json("GET", TWO_CAPTCHA_RES_URL, params=params)
            request = str(check.get("request", ""))
            if check.get("status") == 1:
                return ProviderAnswer(external_id=captcha_id, solution_text=request)
            if request.startswith("ERROR_"):
                raise ProviderError(self.name, f"Error while polling id={captcha_id}: {request}")
            if request != NOT_READY:
                logger.debug(f"[{self.name}] Unexpected poll response for id={captcha_id}: {check}")

    async def report_wrong(self, external_id: str) -> None:
        key = self._key_for(external_id)
        if key is None:
            return
        params = {"key": key, "action": "reportbad", "id": external_id, "json": "1"}
        response = await self._request_json("GET", TWO_CAPTCHA_RES_URL, params=params)
        logger.info(f"[{self.name}] Reported id={external_id} as wrong: {response}")
