from types import SimpleNamespace

import pytest

from recruit_triage.collaborators import GenerationOptions
from recruit_triage.config import Settings
from recruit_triage.errors import ModelNotConfiguredError
from recruit_triage.llm_client import OpenAIGenerator, build_default_generator


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def fake_client(content):
    completions = FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_generate_sends_json_mode_and_system_prompt(run):
    client, completions = fake_client('  {"job_title": "QA Tester"}  ')
    generator = OpenAIGenerator(Settings(openai_model="gpt-4o-mini"), client=client)
    text = run(generator.generate("prompt", GenerationOptions(temperature=0.0, max_tokens=50, system_prompt="sys")))

    assert text == '{"job_title": "QA Tester"}'
    assert completions.kwargs["model"] == "gpt-4o-mini"
    assert completions.kwargs["max_tokens"] == 50
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert completions.kwargs["messages"][-1] == {"role": "user", "content": "prompt"}


def test_plain_text_mode(run):
    client, completions = fake_client(None)
    text = run(OpenAIGenerator(Settings(), client=client).generate("p", GenerationOptions(json_mode=False)))
    assert text == ""
    assert "response_format" not in completions.kwargs


def test_missing_key_raises(run):
    with pytest.raises(ModelNotConfiguredError):
        run(OpenAIGenerator(Settings(openai_api_key="")).generate("p"))


def test_default_generator_needs_key_and_flag():
    assert build_default_generator(Settings(openai_api_key="", generative_tier_enabled=True)) is None
    assert build_default_generator(Settings(openai_api_key="sk-test", generative_tier_enabled=False)) is None
    assert isinstance(build_default_generator(Settings(openai_api_key="sk-test", generative_tier_enabled=True)), OpenAIGenerator)
