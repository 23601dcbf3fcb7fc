# tests/conftest.py
import os
import sys

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

# Ensure placeholder secrets do not trigger validators during tests
os.environ.setdefault("LLM_API_KEY", "test-key")

import asyncio  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from collections.abc import Callable  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from config import StudyForgeSettings  # noqa: E402
from orchestration.models import RawResponse  # noqa: E402


def make_settings(**overrides: Any) -> StudyForgeSettings:
    values: dict[str, Any] = {"LLM_API_KEY": "test-key", "LLM_RETRY_DELAY_SECONDS": 0.0}
    values.update(overrides)
    return StudyForgeSettings(**values)


@pytest.fixture
def settings_factory() -> Callable[..., StudyForgeSettings]:
    return make_settings


class ScriptedClient:
    """Stand-in for ``GenerationClient`` that replays canned replies per chunk.

    ``replies`` maps a chunk index to a reply or to a list of replies consumed
    one per attempt. A reply may be reply text, a ``RawResponse`` or an
    exception to raise.
    """

    def __init__(self, replies: dict[int, Any], delays: dict[int, float] | None = None):
        self.replies = {
            index: list(reply) if isinstance(reply, list) else [reply]
            for index, reply in replies.items()
        }
        self.delays = delays or {}
        self.calls: list[tuple[int, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.sessions = 0

    async def call(self, prompt: str, profile: Any, chunk_index: int = 0) -> RawResponse:
        self.calls.append((chunk_index, prompt))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(chunk_index, 0))
            queue = self.replies[chunk_index]
            reply = queue.pop(0) if len(queue) > 1 else queue[0]
        finally:
            self.in_flight -= 1
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, RawResponse):
            return reply
        return RawResponse(chunk_index, text=reply)

    @asynccontextmanager
    async def session(self):
        self.sessions += 1
        yield self

    def prompts_for(self, chunk_index: int) -> list[str]:
        return [prompt for index, prompt in self.calls if index == chunk_index]
