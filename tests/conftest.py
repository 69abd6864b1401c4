import os
from typing import List, Optional, Set

import pytest

os.environ.setdefault("CADENCE_BUS_ENABLED", "false")
os.environ.setdefault("HEADLINES_ENABLED", "false")


class RecordingGenerate:
    """Stub generative function: records prompts, answers with a numbered reply."""

    def __init__(self, fail_on_calls: Optional[Set[int]] = None, prefix: str = "out"):
        self.prompts: List[str] = []
        self.fail_on_calls = fail_on_calls or set()
        self.prefix = prefix

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        n = len(self.prompts)
        if n in self.fail_on_calls:
            raise RuntimeError(f"generation {n} failed")
        return f"{self.prefix}-{n}"


@pytest.fixture
def recorder() -> RecordingGenerate:
    return RecordingGenerate()


@pytest.fixture
def make_recorder():
    return RecordingGenerate
