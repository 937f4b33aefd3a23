"""Model prompt building, response validation and the single retry."""

import json
from types import SimpleNamespace

import pytest

from app.core import services
from app.core.errors import CategorizationError
from app.core.services import (
    ContentAnalysis,
    UserCorrection,
    build_categorization_prompt,
    categorize_content,
    parse_categorization_response,
)


def _answer(**overrides):
    data = {
        "category": "Groceries",
        "confidence": 0.8,
        "reasoning": "Food shopping",
        "alternatives": ["Errands"],
    }
    data.update(overrides)
    return json.dumps(data)


class _FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0)
        if reply is None:
            return SimpleNamespace(choices=[])
        content, finish = reply
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish)])


@pytest.fixture
def fake_openai(monkeypatch):
    def install(*replies):
        completions = _FakeCompletions(replies)
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(services, "get_client", lambda: client)
        return completions

    return install


# --- parsing --- #


def test_parse_valid_response():
    result = parse_categorization_response(_answer(category="  Groceries  "))
    assert result.suggested_folder == "Groceries"
    assert result.confidence == 0.8
    assert result.alternatives == ["Errands"]


def test_parse_strips_code_fences():
    result = parse_categorization_response("```json\n" + _answer() + "\n```")
    assert result.suggested_folder == "Groceries"


def test_parse_drops_non_string_alternatives():
    result = parse_categorization_response(_answer(alternatives=["Home", 3, None]))
    assert result.alternatives == ["Home"]


@pytest.mark.parametrize("confidence", [-0.1, 1.5, "0.5", True, None])
def test_parse_rejects_bad_confidence(confidence):
    with pytest.raises(CategorizationError):
        parse_categorization_response(_answer(confidence=confidence))


@pytest.mark.parametrize("category", ["", "   ", None, 12])
def test_parse_rejects_missing_category(category):
    with pytest.raises(CategorizationError):
        parse_categorization_response(_answer(category=category))


def test_parse_rejects_non_list_alternatives():
    with pytest.raises(CategorizationError):
        parse_categorization_response(_answer(alternatives="Home"))


def test_parse_rejects_non_object_and_garbage():
    with pytest.raises(CategorizationError):
        parse_categorization_response("[1, 2]")
    with pytest.raises(CategorizationError):
        parse_categorization_response("not json at all")


# --- prompt --- #


def test_prompt_includes_folders_and_corrections():
    analysis = ContentAnalysis(
        content="buy milk",
        existing_folders=["Groceries", "Work"],
        user_corrections=[UserCorrection("x" * 80, "Misc", "Recipes")],
    )
    prompt = build_categorization_prompt(analysis)
    assert '"buy milk"' in prompt
    assert "Groceries, Work" in prompt
    assert '"' + "x" * 50 + '..."' in prompt
    assert 'user chose: "Recipes"' in prompt


def test_short_prompt_drops_context_and_clips_content():
    analysis = ContentAnalysis(
        content="y" * 3000,
        existing_folders=["Groceries"],
        user_corrections=[UserCorrection("a", "b", "c")],
    )
    prompt = build_categorization_prompt(analysis, short=True)
    assert "Groceries" not in prompt
    assert "past corrections" not in prompt
    assert "y" * 1000 in prompt
    assert "y" * 1001 not in prompt


# --- model call --- #


async def test_categorize_content_uses_json_schema(fake_openai):
    completions = fake_openai((_answer(), "stop"))
    result = await categorize_content(ContentAnalysis(content="buy milk"))

    assert result.suggested_folder == "Groceries"
    request = completions.requests[0]
    assert request["response_format"]["type"] == "json_schema"
    assert request["max_tokens"] == services.MAX_OUTPUT_TOKENS


async def test_categorize_content_sends_image_inline(fake_openai):
    completions = fake_openai((_answer(), "stop"))
    await categorize_content(ContentAnalysis(image_data_url="data:image/png;base64,AAAA"))

    user_message = completions.requests[0]["messages"][-1]
    parts = {p["type"]: p for p in user_message["content"]}
    assert parts["image_url"]["image_url"]["url"] == "data:image/png;base64,AAAA"


async def test_empty_response_retried_once_with_short_prompt(fake_openai):
    completions = fake_openai(("", "stop"), (_answer(category="Dairy"), "stop"))
    analysis = ContentAnalysis(content="buy milk", existing_folders=["Groceries"])

    result = await categorize_content(analysis)

    assert result.suggested_folder == "Dairy"
    assert len(completions.requests) == 2
    retry_prompt = completions.requests[1]["messages"][-1]["content"]
    assert "Groceries" not in retry_prompt


async def test_truncated_response_retried(fake_openai):
    completions = fake_openai(('{"category": "Gro', "length"), (_answer(), "stop"))
    result = await categorize_content(ContentAnalysis(content="buy milk"))
    assert result.suggested_folder == "Groceries"
    assert len(completions.requests) == 2


async def test_second_empty_response_fails(fake_openai):
    completions = fake_openai(("", "stop"), ("  ", "stop"))
    with pytest.raises(CategorizationError):
        await categorize_content(ContentAnalysis(content="buy milk"))
    assert len(completions.requests) == 2


async def test_malformed_response_is_not_retried(fake_openai):
    completions = fake_openai((_answer(confidence=7), "stop"))
    with pytest.raises(CategorizationError):
        await categorize_content(ContentAnalysis(content="buy milk"))
    assert len(completions.requests) == 1


async def test_no_choices_is_a_model_failure(fake_openai):
    fake_openai(None)
    with pytest.raises(CategorizationError, match="no choices"):
        await categorize_content(ContentAnalysis(content="buy milk"))
