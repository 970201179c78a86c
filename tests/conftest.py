import copy
import uuid
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from goaltracker.auth import get_current_user
from goaltracker.errors import ConnectivityError
from goaltracker.main import app
from goaltracker.routes import get_strategist
from goaltracker.store import get_store
from goaltracker.strategist import AIStrategist

USER_ID = "user-1"


class InMemoryStore:
    """Same surface as RecordStore, backed by dicts."""

    def __init__(self):
        self.tables = {}
        self.fail_on = set()

    def _check(self, op, table):
        if op in self.fail_on or f"{op}:{table}" in self.fail_on:
            raise ConnectivityError()

    def _rows(self, table):
        return self.tables.setdefault(table, [])

    def select(self, table, user_id, **filters):
        self._check("select", table)
        return [
            copy.deepcopy(row) for row in self._rows(table)
            if row["user_id"] == user_id and all(row.get(k) == v for k, v in filters.items())
        ]

    def select_one(self, table, user_id, **filters):
        rows = self.select(table, user_id, **filters)
        return rows[0] if rows else None

    def insert(self, table, user_id, row):
        self._check("insert", table)
        now = datetime.now()
        record = {"created_at": now, "updated_at": now, **row,
                  "id": row.get("id") or str(uuid.uuid4()), "user_id": user_id}
        self._rows(table).append(record)
        return copy.deepcopy(record)

    def update(self, table, user_id, record_id, updates):
        self._check("update", table)
        for row in self._rows(table):
            if row["id"] == record_id and row["user_id"] == user_id:
                row.update(updates)
                row["updated_at"] = datetime.now()
                return copy.deepcopy(row)
        return None

    def delete(self, table, user_id, record_id):
        self._check("delete", table)
        rows = self._rows(table)
        for i, row in enumerate(rows):
            if row["id"] == record_id and row["user_id"] == user_id:
                del rows[i]
                return True
        return False

    def upsert(self, table, user_id, row):
        existing = self.select_one(table, user_id)
        if existing:
            return self.update(table, user_id, existing["id"], row)
        return self.insert(table, user_id, row)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def llm():
    return MagicMock()


@pytest.fixture
def client(store, llm):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_current_user] = lambda: {"sub": USER_ID, "email": "ada@example.com"}
    app.dependency_overrides[get_strategist] = lambda: AIStrategist(store, llm=llm)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_goal(goal_id, parent=None, **fields):
    return {
        "id": goal_id,
        "title": f"Goal {goal_id}",
        "description": "",
        "priority": "medium",
        "progress": 0,
        "impact": 50,
        "type": "medium-term",
        "parent_goal_id": parent,
        "user_id": USER_ID,
        **fields,
    }


def make_task(task_id, priority="medium", impact=50, **fields):
    return {
        "id": task_id,
        "title": f"Task {task_id}",
        "description": "",
        "estimated_time": 30,
        "impact_score": impact,
        "priority": priority,
        "completed": False,
        "in_progress": False,
        "goal_id": None,
        "user_id": USER_ID,
        **fields,
    }
