import json
import logging
import re
from typing import Sequence

from pydantic import BaseModel, ValidationError, field_validator

from tenantsql.core import schemas
from tenantsql.core.errors import UnparsableModelReply
from tenantsql.core.nl2sql import prompts
from tenantsql.core.nl2sql.llm import LLMClient

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class Classification(BaseModel):
    intent: schemas.Intent
    requires_schema: bool
    needs_sql: bool

    @field_validator("intent", mode="before")
    @classmethod
    def normalize_intent(cls, value):
        # Models answer "follow-up" as often as "follow_up"
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value


# Unknown replies take the thorough path: ground in the schema and validate SQL
DEFAULT_CLASSIFICATION = Classification(
    intent=schemas.Intent.FRESH, requires_schema=True, needs_sql=True
)


def parse_classification(content: str) -> Classification:
    """
    Parse the classifier's JSON reply.

    Raises:
        UnparsableModelReply: no JSON object, invalid JSON, or missing/invalid keys.
    """
    match = _JSON_OBJECT.search(content or "")
    if not match:
        raise UnparsableModelReply("Classifier reply has no JSON object")

    try:
        return Classification.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as error:
        raise UnparsableModelReply(f"Classifier reply is not a classification: {error}") from error


class IntentClassifier:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def classify(
        self,
        prompt: str,
        prior_turns: Sequence[schemas.ContextTurn],
        schema_text: str,
    ) -> Classification:
        """Label a user turn; fails open to DEFAULT_CLASSIFICATION."""
        messages = prompts.classification_messages(prompt, prior_turns, schema_text)
        content = await self.llm.complete(messages)

        try:
            classification = parse_classification(content)
        except UnparsableModelReply as error:
            logger.warning(f"{error}; falling back to {DEFAULT_CLASSIFICATION.model_dump()}")
            return DEFAULT_CLASSIFICATION

        logger.info(f"Classified prompt: {classification.model_dump(mode='json')}")
        return classification
