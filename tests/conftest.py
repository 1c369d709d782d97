from typing import Any, Optional

import pytest

from tagfunctions.core.config import settings
from tagfunctions.domain.evaluator import Evaluator
from tagfunctions.domain.registry import MetricDefaults, Registry
from tagfunctions.storage.memory_store import MemoryReadingStore

from factories import TASK, config, window_tags


@pytest.fixture(autouse=True)
def _no_log_file(monkeypatch):
    monkeypatch.setattr(settings, "log_file", "")


@pytest.fixture
def store() -> MemoryReadingStore:
    return MemoryReadingStore()


@pytest.fixture
def registry() -> Registry:
    # Built-in defaults, independent of any TAGFN_* environment
    return Registry(MetricDefaults())


@pytest.fixture
def evaluator(store, registry) -> Evaluator:
    return Evaluator(store, registry)


@pytest.fixture
def run(store, evaluator):
    """Load readings for the test task and evaluate one function kind."""

    def _run(function_type: str, readings, tags: Optional[list] = None, task_id: Any = TASK, **kw):
        store.load_task(TASK, readings)
        roster = tags if tags is not None else window_tags()
        return evaluator.evaluate(config(function_type, **kw), task_id, roster)

    return _run
