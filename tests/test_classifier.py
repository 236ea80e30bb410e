import pytest

from tenantsql.core import schemas
from tenantsql.core.errors import LLMTimeout, UnparsableModelReply
from tenantsql.core.nl2sql.classifier import (
    DEFAULT_CLASSIFICATION,
    IntentClassifier,
    parse_classification,
)
from tenantsql.core.nl2sql.prompts import classification_messages

from helpers import ScriptedLLM, classification


def test_parse_plain_json():
    result = parse_classification(classification(requires_schema=False, needs_sql=False))

    assert result.intent == schemas.Intent.FRESH
    assert result.requires_schema is False
    assert result.needs_sql is False


def test_parse_json_wrapped_in_prose():
    content = 'Sure!\n```json\n{"intent": "follow-up", "requires_schema": true, "needs_sql": "true"}\n```'
    result = parse_classification(content)

    assert result.intent == schemas.Intent.FOLLOW_UP
    assert result.requires_schema is True
    assert result.needs_sql is True


@pytest.mark.parametrize(
    "content",
    [
        "no json here",
        "{not valid json}",
        '{"intent": "fresh", "requires_schema": true}',
        '{"intent": "sideways", "requires_schema": true, "needs_sql": true}',
    ],
)
def test_parse_rejects_malformed_replies(content):
    with pytest.raises(UnparsableModelReply):
        parse_classification(content)


@pytest.mark.asyncio
async def test_classify_fails_open_on_garbage():
    llm = ScriptedLLM("I think this is a SQL question")
    result = await IntentClassifier(llm).classify("show users", [], "Table: users")

    assert result == DEFAULT_CLASSIFICATION
    assert result.intent == schemas.Intent.FRESH
    assert result.requires_schema is True
    assert result.needs_sql is True


@pytest.mark.asyncio
async def test_classify_returns_model_labels():
    llm = ScriptedLLM(classification(requires_schema=True, needs_sql=False, intent="follow_up"))
    turns = [schemas.ContextTurn(prompt="list users")]
    result = await IntentClassifier(llm).classify("which column has names?", turns, "")

    assert result.intent == schemas.Intent.FOLLOW_UP
    assert result.needs_sql is False
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_classify_propagates_model_failures():
    llm = ScriptedLLM(LLMTimeout("Language model request timed out"))

    with pytest.raises(LLMTimeout):
        await IntentClassifier(llm).classify("show users", [], "")


def test_classification_prompt_placeholders():
    messages = classification_messages("What can you do?", [], "")
    user_content = messages[-1]["content"]

    assert messages[0]["role"] == "system"
    assert "Schema not available" in user_content
    assert "No context" in user_content
    assert user_content.endswith("What can you do?")


def test_classification_prompt_lists_prior_prompts():
    turns = [
        schemas.ContextTurn(prompt="list users"),
        schemas.ContextTurn(prompt="only the active ones"),
    ]
    user_content = classification_messages("sort by name", turns, "Table: users")[-1]["content"]

    assert "Context 1: list users" in user_content
    assert "Context 2: only the active ones" in user_content
    assert "No context" not in user_content
