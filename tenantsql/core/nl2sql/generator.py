# tenantsql/core/nl2sql/generator.py
"""
GENERATOR MODULE - Natural language to validated SQL

Purpose:
    1. Classify the turn (direct answer, schema prose, or SQL)
    2. Ground the generation prompt in the schema mirror
    3. Refuse mutating SQL before anything touches the tenant database
    4. Plan-check the candidate and repair it at most once

State machine:
    classify -> direct answer                                   -> answered
             -> schema prose                                    -> answered
             -> generate -> safety gate                         -> blocked
                         -> plan check                          -> accepted
                         -> repair -> safety gate               -> blocked
                                   -> plan check                -> accepted | rejected
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from tenantsql.core import models, schemas
from tenantsql.core.config import Settings, settings as default_settings
from tenantsql.core.errors import LLMError, PlanValidationFailed, UnparsableModelReply
from tenantsql.core.nl2sql import prompts
from tenantsql.core.nl2sql.classifier import Classification, IntentClassifier
from tenantsql.core.nl2sql.guard import find_blocked_keyword
from tenantsql.core.nl2sql.history import record_query
from tenantsql.core.nl2sql.llm import LLMClient
from tenantsql.core.nl2sql.parsing import EXPLANATION_NOT_FOUND, parse_generation_reply
from tenantsql.core.nl2sql.planner import explain_query
from tenantsql.core.schema.formatter import format_schema
from tenantsql.core.tenancy import ConnectionRegistry, TenantConnection, resolve_connection

logger = logging.getLogger(__name__)

Planner = Callable[[TenantConnection, str, float], Awaitable[None]]

BLOCKED_EXPLANATION = "This action is blocked because it modifies the database structure or data."
BLOCKED_AFTER_REPAIR_EXPLANATION = "Corrected SQL still contains destructive actions. Access denied."
REJECTED_EXPLANATION = "The generated SQL seems incorrect. Please rephrase your query."


@dataclass
class GenerationResult:
    status: schemas.GenerationStatus
    intent: schemas.Intent
    requires_schema: bool
    needs_sql: bool
    blocked: bool = False
    explanation: Optional[str] = None
    sql: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Candidate:
    explanation: str
    sql: str


class SQLGenerator:
    def __init__(
        self,
        llm: LLMClient,
        db: AsyncSession,
        registry: ConnectionRegistry,
        settings: Settings = default_settings,
        planner: Planner = explain_query,
    ):
        self.llm = llm
        self.db = db
        self.registry = registry
        self.settings = settings
        self.planner = planner
        self.classifier = IntentClassifier(llm)

    def _result(self, classification: Classification, status, **fields) -> GenerationResult:
        return GenerationResult(
            status=status,
            intent=classification.intent,
            requires_schema=classification.requires_schema,
            needs_sql=classification.needs_sql,
            **fields,
        )

    async def generate(
        self,
        prompt: str,
        user: models.User,
        prior_turns: Sequence[schemas.ContextTurn] = (),
    ) -> GenerationResult:
        """
        Answer one user turn.

        Args:
            prompt: The user's question.
            user: Authenticated user; their company is the tenant.
            prior_turns: Earlier turns sent back by the client, oldest first.

        Returns:
            GenerationResult in one of the terminal states answered, accepted,
            blocked or rejected.
        """
        window = self.settings.CONTEXT_WINDOW
        turns = list(prior_turns)[-window:] if window > 0 else []
        schema_text = await format_schema(user.company_id, self.db)

        classification = await self.classifier.classify(prompt, turns, schema_text)
        if classification.intent == schemas.Intent.FRESH:
            turns = []

        if not classification.requires_schema:
            message = await self.llm.complete(prompts.direct_answer_messages(prompt, turns))
            return self._result(classification, schemas.GenerationStatus.ANSWERED, message=message)

        if not classification.needs_sql:
            message = await self.llm.complete(prompts.schema_answer_messages(prompt, schema_text))
            return self._result(classification, schemas.GenerationStatus.ANSWERED, message=message)

        connection = await resolve_connection(user.id, self.db, self.registry)
        result = await self._generate_sql(prompt, turns, schema_text, connection, classification)

        if result.status == schemas.GenerationStatus.ACCEPTED and self.settings.QUERY_HISTORY_ENABLED:
            await record_query(self.db, user.company_id, user.id, prompt, result.sql)

        return result

    async def _ask(self, messages) -> Candidate:
        """One model call parsed into a candidate; raises LLMError or UnparsableModelReply."""
        reply = parse_generation_reply(await self.llm.complete(messages))
        return Candidate(explanation=reply.explanation, sql=reply.sql)

    async def _plan(self, connection: TenantConnection, sql: str) -> Optional[str]:
        """Planner error message, or None when the query plans cleanly."""
        try:
            await self.planner(connection, sql, self.settings.PLAN_TIMEOUT_SECONDS)
        except PlanValidationFailed as error:
            return str(error)
        return None

    async def _generate_sql(
        self,
        prompt: str,
        turns: Sequence[schemas.ContextTurn],
        schema_text: str,
        connection: TenantConnection,
        classification: Classification,
    ) -> GenerationResult:
        dialect = connection.engine.dialect.name

        # First candidate
        candidate: Optional[Candidate] = None
        try:
            candidate = await self._ask(
                prompts.generation_messages(
                    prompt, turns, schema_text, dialect, self.settings.DEFAULT_ROW_LIMIT
                )
            )
        except (LLMError, UnparsableModelReply) as error:
            failure = str(error)
        else:
            keyword = find_blocked_keyword(candidate.sql)
            if keyword:
                logger.warning(f"Blocked generated SQL ({keyword}) for prompt: {prompt!r}")
                return self._result(
                    classification,
                    schemas.GenerationStatus.BLOCKED,
                    blocked=True,
                    explanation=BLOCKED_EXPLANATION,
                    sql=candidate.sql,
                    error=f"Query contains blocked keyword: {keyword}",
                )
            failure = await self._plan(connection, candidate.sql)
            if failure is None:
                return self._result(
                    classification,
                    schemas.GenerationStatus.ACCEPTED,
                    explanation=candidate.explanation,
                    sql=candidate.sql,
                )

        # Exactly one repair
        failed_sql = candidate.sql if candidate else ""
        logger.info(f"First candidate failed ({failure}), requesting one repair")
        try:
            repaired = await self._ask(
                prompts.repair_messages(prompt, failed_sql, failure, schema_text, dialect)
            )
        except (LLMError, UnparsableModelReply) as error:
            logger.warning(f"Repair attempt produced no query: {error}")
            return self._result(
                classification,
                schemas.GenerationStatus.REJECTED,
                explanation=REJECTED_EXPLANATION,
                sql=failed_sql or None,
                error=str(error),
            )

        keyword = find_blocked_keyword(repaired.sql)
        if keyword:
            logger.warning(f"Blocked repaired SQL ({keyword}) for prompt: {prompt!r}")
            return self._result(
                classification,
                schemas.GenerationStatus.BLOCKED,
                blocked=True,
                explanation=BLOCKED_AFTER_REPAIR_EXPLANATION,
                sql=repaired.sql,
                error=f"Query contains blocked keyword: {keyword}",
            )

        failure = await self._plan(connection, repaired.sql)
        if failure is not None:
            logger.warning(f"Repaired query still fails planning: {failure}")
            return self._result(
                classification,
                schemas.GenerationStatus.REJECTED,
                explanation=REJECTED_EXPLANATION,
                sql=repaired.sql,
                error=failure,
            )

        explanation = repaired.explanation
        if explanation == EXPLANATION_NOT_FOUND and candidate is not None:
            explanation = candidate.explanation
        return self._result(
            classification,
            schemas.GenerationStatus.ACCEPTED,
            explanation=explanation,
            sql=repaired.sql,
        )
