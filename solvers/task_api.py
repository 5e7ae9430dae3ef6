"""
Adapters for services speaking the createTask / getTaskResult JSON protocol
(Anti-Captcha and CapMonster Cloud).
"""

import base64
import logging
import time
from typing import List, Optional

import httpx

from models.captcha_result import ProviderAnswer
from solvers.base import HttpCaptchaProvider
from utils.errors import ProviderError

logger = logging.getLogger(__name__)


class TaskApiProvider(HttpCaptchaProvider):
    """ImageToTextTask over the createTask protocol, parameterized by base URL."""

    base_url: str = ""

    async def solve(self, image: bytes, sensitivity: bool = False) -> ProviderAnswer:
        key = self._pick_key()
        task = {
            "type": "ImageToTextTask",
            "body": base64.b64encode(image).decode("ascii"),
        }
        if sensitivity:
            task["case"] = True

        created = await self._request_json(
            "POST", f"{self.base_url}/createTask", json={"clientKey": key, "task": task}
        )
        self._raise_for_error(created, "createTask")
        task_id = created.get("taskId") or 0
        if not task_id:
            raise ProviderError(self.name, f"createTask returned no taskId: {created}")

        external_id = str(task_id)
        self._remember_key(external_id, key)

        started = time.monotonic()
        while True:
            await self._wait_for_next_poll(started, external_id)
            result = await self._request_json(
                "POST", f"{self.base_url}/getTaskResult", json={"clientKey": key, "taskId": task_id}
            )
            self._raise_for_error(result, "getTaskResult")
            if result.get("status") == "ready":
                text = (result.get("solution") or {}).get("text") or ""
                logger.info(f"[{self.name}] Solved taskId={task_id}")
                return ProviderAnswer(external_id=external_id, solution_text=text)

    async def report_wrong(self, external_id: str) -> None:
        key = self._key_for(external_id)
        if key is None:
            return
        try:
            task_id = int(external_id)
        except ValueError:
            logger.info(f"[{self.name}] Ignoring report for non-numeric id={external_id}")
            return
        response = await self._request_json(
            "POST",
            f"{self.base_url}/reportIncorrectImageCaptcha",
            json={"clientKey": key, "taskId": task_id},
        )
        logger.info(f"[{self.name}] Reported taskId={task_id} as wrong: {response}")

    def _raise_for_error(self, payload: dict, step: str) -> None:
        if payload.get("errorId", 0) != 0:
            raise ProviderError(
                self.name,
                f"{step} error: {payload.get('errorCode')} - {payload.get('errorDescription')}",
            )


class AntiCaptchaProvider(TaskApiProvider):
    base_url = "https://api.anti-captcha.com"

    def __init__(
        self,
        client_keys: List[str],
        client: Optional[httpx.AsyncClient] = None,
        polling_interval: float = 5.0,
        max_wait: float = 120.0,
        name: str = "AntiCaptcha",
        trust: int = 9,
    ):
        super().__init__(name, trust, client_keys, client, polling_interval, max_wait)


class CapMonsterProvider(TaskApiProvider):
    base_url = "https://api.capmonster.cloud"

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        polling_interval: float = 5.0,
        max_wait: float = 120.0,
        name: str = "CapMonster",
        trust: int = 5,
    ):
        super().__init__(name, trust, [api_key], client, polling_interval, max_wait)
