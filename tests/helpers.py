"""Test doubles and builders shared by the test modules."""

import json
import sqlite3
from typing import List

TENANT_DDL = """
CREATE TABLE users (id INTEGER PRIMARY KEY, name VARCHAR(50), email TEXT);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    user_id INTEGER,
    total NUMERIC(10, 2),
    created_at DATETIME
);
CREATE TABLE legacy_logs (id INTEGER PRIMARY KEY, message TEXT);
INSERT INTO users (id, name, email) VALUES (1, 'Ada', 'ada@example.com');
INSERT INTO users (id, name, email) VALUES (2, 'Linus', 'linus@example.com');
INSERT INTO orders (id, user_id, total, created_at) VALUES (1, 1, 10.50, '2026-01-01 10:00:00');
INSERT INTO orders (id, user_id, total, created_at) VALUES (2, 2, 99.00, '2026-01-02 11:30:00');
"""


def run_tenant_sql(path, script: str) -> None:
    """Change the fake tenant database behind the service's back."""
    conn = sqlite3.connect(path)
    try:
        conn.executescript(script)
        conn.commit()
    finally:
        conn.close()


def classification(requires_schema=True, needs_sql=True, intent="fresh") -> str:
    return json.dumps(
        {"intent": intent, "requires_schema": requires_schema, "needs_sql": needs_sql}
    )


def sql_reply(sql: str, explanation: str = "I read the orders table.") -> str:
    return f"Explanation:\n{explanation}\n\nSQL:\n```sql\n{sql}\n```"


class ScriptedLLM:
    """Language model stand-in: returns queued replies and records every call."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: List[list] = []

    def queue(self, *replies):
        self.replies.extend(replies)

    async def complete(self, messages):
        self.calls.append(messages)
        if not self.replies:
            raise AssertionError("Unexpected language model call")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def prompt_of(self, call_index: int) -> str:
        return "\n".join(m["content"] for m in self.calls[call_index])


class RecordingPlanner:
    """Planner that records calls and delegates to a real one when given."""

    def __init__(self, delegate=None):
        self.delegate = delegate
        self.calls = []

    async def __call__(self, connection, sql, timeout):
        self.calls.append(sql)
        if self.delegate is not None:
            await self.delegate(connection, sql, timeout)
