"""Pytest fixtures: deterministic fakes for every collaborator, no network."""
import asyncio
import json
import os

os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("GENERATIVE_TIER_ENABLED", "false")
os.environ.setdefault("STATISTICAL_TIER_ENABLED", "false")

import pytest

from recruit_triage.collaborators import QuestionAnswer
from recruit_triage.services import dedup_cache
from recruit_triage.statistical_classifier import EXPERIENCE_LABELS, JOB_CATEGORY_LABELS


class FakeGenerator:
    """TextGenerator returning canned responses (str, dict or exception), in order."""

    def __init__(self, *responses, delay: float = 0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls = 0
        self.prompts = []

    async def generate(self, prompt, options=None):
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses[min(self.calls, len(self.responses)) - 1] if self.responses else ""
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class FakeStatisticalModels:
    """StatisticalModels with fixed QA answers and label rankings."""

    def __init__(
        self,
        answer: str = "",
        score: float = 0.0,
        category_ranking=None,
        experience_ranking=None,
        error: BaseException = None,
    ):
        self.answer = answer
        self.score = score
        self.category_ranking = category_ranking or [("Other", 0.9)]
        self.experience_ranking = experience_ranking or [("Cannot determine experience level", 0.9)]
        self.error = error
        self.qa_calls = 0
        self.classify_calls = 0
        self.contexts = []

    @property
    def calls(self):
        return self.qa_calls + self.classify_calls

    async def answer_question(self, context, question):
        self.qa_calls += 1
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return QuestionAnswer(self.answer, self.score)

    async def classify(self, text, labels):
        self.classify_calls += 1
        if self.error is not None:
            raise self.error
        if tuple(labels) == JOB_CATEGORY_LABELS:
            return list(self.category_ranking)
        if tuple(labels) == EXPERIENCE_LABELS:
            return list(self.experience_ranking)
        return []


class FakeRedis:
    def __init__(self):
        self.store = {}

    def ping(self):
        return True

    def exists(self, key):
        return int(key in self.store)

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = (value, ex)
        return True

    def delete(self, *keys):
        removed = sum(1 for k in keys if k in self.store)
        for k in keys:
            self.store.pop(k, None)
        return removed


@pytest.fixture(autouse=True)
def fake_redis():
    """Every test gets an empty dedup store instead of a real Redis."""
    client = FakeRedis()
    dedup_cache.reset_redis_client(client)
    yield client
    dedup_cache.reset_redis_client(None)


@pytest.fixture
def run():
    """Drive a coroutine to completion from a sync test."""
    return asyncio.run
