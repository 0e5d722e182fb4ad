import asyncio
import os
from typing import List, Sequence, Union

# Must be set before notewright.utils.logging is imported.
os.environ.setdefault("NOTEWRIGHT_LOG_TO_FILE", "0")

import pytest

from notewright.clients.offline import OfflineGenerator
from notewright.config.settings import Settings
from notewright.core.engine import RetryPolicy
from notewright.core.generation import GenerationRequest
from notewright.core.services import build_services
from notewright.memory import db

USER = "user-1"
OTHER_USER = "user-2"


class ScriptedGenerator:
    """Returns (or raises) the scripted items in order and records every request."""

    name = "scripted"

    def __init__(self, script: Sequence[Union[str, Exception]]) -> None:
        self.script = list(script)
        self.requests: List[GenerationRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store(tmp_path):
    db.configure(str(tmp_path / "notewright.db"))
    return tmp_path


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def make_services(tmp_path, no_sleep):
    def _make(generator=None, **kwargs):
        settings = Settings(db_path=str(tmp_path / "notewright.db"))
        return build_services(
            settings=settings,
            generator=generator or OfflineGenerator(),
            retry=RetryPolicy(max_attempts=3, base_delay=2.0, sleep=no_sleep),
            **kwargs,
        )

    return _make


@pytest.fixture
def services(make_services):
    return make_services()
