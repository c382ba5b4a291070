"""Shared fixtures: scripted chat backend, fake wall clock and virtual scheduler."""
import json
import random

import pytest

from MindCanvas.agents import ModelClient
from MindCanvas.config import AppSettings
from MindCanvas.core import CanvasStore, ResourceGovernor
from MindCanvas.infrastructure import TransportError
from MindCanvas.llm_backends import Completion, LLMBackend, TokenUsage
from MindCanvas.orchestrators import IntentionOrchestrator
from MindCanvas.runtime import TaskExecutionEngine, VirtualScheduler


class FakeBackend(LLMBackend):
    """Backend replaying scripted responses: text, Completion or an exception."""

    def __init__(self, responses=None, model="gpt-4", connected=True):
        self.model = model
        self.responses = list(responses or [])
        self.calls = []
        self.max_tokens = []
        self.connected = connected
        self.probes = 0
        self.closed = False

    async def acomplete(self, messages, temperature=0.7, max_tokens=None):
        self.calls.append(messages)
        self.max_tokens.append(max_tokens)
        if not self.responses:
            raise TransportError("no scripted response")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Completion):
            return item
        return Completion(
            content=item,
            model=self.model,
            usage=TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150),
        )

    async def check_connection(self):
        self.probes += 1
        return self.connected

    async def aclose(self):
        self.closed = True


class FakeClock:
    """Settable wall clock for the governor window."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def analysis_json(n_tasks=3, progress=25, summary="Move into a new apartment smoothly"):
    return json.dumps({
        "intentionAnalysis": summary,
        "suggestedTasks": [
            {
                "title": f"Task {i + 1}",
                "description": f"Do step {i + 1}",
                "reasoning": f"Step {i + 1} matters",
            }
            for i in range(n_tasks)
        ],
        "progressEstimate": progress,
    })


def suggestions_json(titles):
    return json.dumps({
        "newTasks": [
            {"title": t, "description": f"About {t}", "reasoning": f"{t} helps"}
            for t in titles
        ]
    })


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def governor(settings, fake_clock):
    return ResourceGovernor(settings.governor, clock=fake_clock)


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def store():
    return CanvasStore()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend, governor, settings, scheduler):
    return ModelClient(backend, governor, settings, sleep=scheduler.sleep)


@pytest.fixture
def orchestrator(store, governor, client, scheduler, settings):
    return IntentionOrchestrator(store, governor, client, scheduler, settings)


@pytest.fixture
def engine(store, governor, client, scheduler, settings):
    return TaskExecutionEngine(
        store, governor, client, scheduler, settings, rng=random.Random(7)
    )


@pytest.fixture
def fake_backend_cls():
    return FakeBackend


@pytest.fixture
def payloads():
    """Builders for scripted JSON payloads."""
    class Payloads:
        analysis = staticmethod(analysis_json)
        suggestions = staticmethod(suggestions_json)
    return Payloads
