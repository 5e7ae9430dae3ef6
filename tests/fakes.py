"""
In-process fake providers for resolver tests.
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.captcha_result import ProviderAnswer
from solvers.base import CaptchaProvider
from utils.errors import ProviderError


class FakeProvider(CaptchaProvider):
    """Answers with a fixed solution after a fixed delay."""

    def __init__(self, name, solution, delay=0.0, trust=0):
        super().__init__(name, trust)
        self.solution = solution
        self.delay = delay
        self.calls = 0
        self.completed = 0
        self.cancelled = 0
        self.reported = []
        self.closed = False
        self.last_sensitivity = None

    async def solve(self, image, sensitivity=False):
        self.calls += 1
        self.last_sensitivity = sensitivity
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        self.completed += 1
        return ProviderAnswer(external_id=f"FAKE_ID_{self.name}", solution_text=self.solution)

    async def report_wrong(self, external_id):
        self.reported.append(external_id)

    async def close(self):
        self.closed = True


class FailingProvider(FakeProvider):
    """Always fails after its delay."""

    def __init__(self, name, delay=0.0, trust=9):
        super().__init__(name, solution="", delay=delay, trust=trust)

    async def solve(self, image, sensitivity=False):
        self.calls += 1
        await asyncio.sleep(self.delay)
        raise RuntimeError(f"{self.name} fails always")


class TogglingProvider(FakeProvider):
    """Fails `fails` times, then answers."""

    def __init__(self, name, fails, solution="GOOD", delay=0.1, trust=7):
        super().__init__(name, solution=solution, delay=delay, trust=trust)
        self.fails_left = fails

    async def solve(self, image, sensitivity=False):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.fails_left > 0:
            self.fails_left -= 1
            raise ProviderError(self.name, f"intentional failure, {self.fails_left} left")
        self.completed += 1
        return ProviderAnswer(external_id=f"FAKE_ID_{self.name}", solution_text=self.solution)


class BrokenReportProvider(FakeProvider):
    """Solves normally but its reporting endpoint is down."""

    async def report_wrong(self, external_id):
        self.reported.append(external_id)
        raise ConnectionError("report endpoint unreachable")
