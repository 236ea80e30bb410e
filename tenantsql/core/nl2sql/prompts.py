"""Prompt builders for every language model call in the pipeline."""

import json
from typing import List, Sequence

from tenantsql.core import schemas
from tenantsql.core.nl2sql.llm import Message

CLASSIFIER_SYSTEM_PROMPT = """
You classify questions sent to a database assistant. Label the user's prompt on three axes:

1. intent: "fresh" when the prompt stands on its own, "follow_up" when it only makes sense with the earlier conversation.
2. requires_schema: true when the answer needs the company's database (its tables, columns or data); false when it is general, definitional or about the assistant itself.
3. needs_sql: true when answering requires writing and running a SQL query.

Reply with JSON only, exactly these keys:
{"intent": "fresh" | "follow_up", "requires_schema": true | false, "needs_sql": true | false}

Examples:
Prompt: "Do we have a column that stores user names?"
{"intent": "fresh", "requires_schema": true, "needs_sql": false}

Prompt: "Now filter by customers from Bangalore"
{"intent": "follow_up", "requires_schema": true, "needs_sql": true}

Prompt: "What can you do?"
{"intent": "fresh", "requires_schema": false, "needs_sql": false}
""".strip()


def classification_messages(
    prompt: str, prior_turns: Sequence[schemas.ContextTurn], schema_text: str
) -> List[Message]:
    if prior_turns:
        context_text = "\n".join(
            f"Context {i}: {turn.prompt}" for i, turn in enumerate(prior_turns, start=1)
        )
    else:
        context_text = "No context"

    user_prompt = (
        f"Schema:\n{schema_text or 'Schema not available'}\n\n"
        f"Context:\n{context_text}\n\n"
        f"User prompt:\n{prompt}"
    )
    return [
        {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def direct_answer_messages(
    prompt: str, prior_turns: Sequence[schemas.ContextTurn]
) -> List[Message]:
    conversation = "\n\n".join(
        f"Q: {turn.prompt}\nA: {turn.message or ''}" for turn in prior_turns
    )
    content = (
        "You are a helpful assistant for a database question-answering tool. "
        "Answer the user's question clearly. If there is no earlier conversation, "
        "treat it as a new question.\n\n"
        f"{conversation}\n\n"
        f"User's question: {prompt}"
    )
    return [{"role": "user", "content": content.strip()}]


def schema_answer_messages(prompt: str, schema_text: str) -> List[Message]:
    content = (
        "You are a database expert. The user's question needs knowledge of the "
        "database schema below but does not need a SQL query.\n\n"
        f"Schema:\n{schema_text or 'Schema not available'}\n\n"
        f'User\'s question: "{prompt}"\n\n'
        "Answer clearly and concisely in plain English."
    )
    return [{"role": "user", "content": content}]


def _context_block(prior_turns: Sequence[schemas.ContextTurn]) -> str:
    entries = []
    for turn in prior_turns:
        sample = json.dumps((turn.result or [])[:2], default=str)
        entries.append(
            f"Prompt: {turn.prompt}\nSQL: {turn.sql or ''}\nResult (sample): {sample}"
        )
    return "\n\n".join(entries)


def generation_messages(
    prompt: str,
    prior_turns: Sequence[schemas.ContextTurn],
    schema_text: str,
    dialect: str,
    row_limit: int,
) -> List[Message]:
    context = (
        f"Previous context:\n{_context_block(prior_turns)}\n\n" if prior_turns else ""
    )
    content = f"""
You are a {dialect} expert. You turn user questions into correct SQL using only the schema below.
The schema lists every table, its columns with their types, and a description of what each column holds.
Earlier prompts, their SQL and a sample of their results may be given as context; ignore it when absent.

Schema:
{schema_text or 'Schema not available'}

{context}User request:
"{prompt}"

You must:
1. Describe what you understood from the request.
2. Explain the logic and which tables and columns you used and why.
3. Call out any assumption you made.
4. Only use tables and columns from the schema. Never invent columns.
5. Join tables when a column lives in a different table.
6. When selecting rows, end the query with "LIMIT {row_limit}" unless the user explicitly asks for more or all rows.
7. Only read data. Never modify data or structure.

Output format:
Explanation:
<your explanation, written to the user>

SQL:
```sql
<the query and nothing else>
```
""".strip()
    return [{"role": "user", "content": content}]


def repair_messages(
    prompt: str, failed_sql: str, error: str, schema_text: str, dialect: str
) -> List[Message]:
    content = f"""
The SQL generated for a user's request failed validation on {dialect}.

Error:
{error}

User request:
{prompt}

Failed SQL:
{failed_sql or '(no SQL was produced)'}

Schema:
{schema_text or 'Schema not available'}

Return a corrected read-only query in the same format:
Explanation:
<what you changed>

SQL:
```sql
<the corrected query and nothing else>
```
""".strip()
    return [{"role": "user", "content": content}]
