import copy
import itertools
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from supabase import AuthError

from labeler.api import create_app
from labeler.auth import verify_token
from labeler.config import Settings

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
VALID_TOKEN = "valid-token"


class FakeAuthApiError(AuthError):
    """Auth failure carrying an HTTP status, as raised by supabase auth."""

    def __init__(self, message: str, status: int = 400):
        Exception.__init__(self, message)
        self.message = message
        self.status = status


class _Result:
    def __init__(self, data):
        self.data = data


class _Query:
    """Just enough of the postgrest query builder for the store adapter."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.filters: List[tuple] = []
        self.limit_n: Optional[int] = None
        self.payload: Any = None

    def select(self, columns: str = "*"):
        self.columns = columns
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def execute(self):
        self.db.calls.append((self.op, self.table_name, list(self.filters)))
        failure = self.db.failures.get((self.op, self.table_name))
        if failure is not None:
            raise failure
        if self.op == "insert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            stored = []
            for row in rows:
                row = dict(row)
                row.setdefault("id", f"{self.table_name}-{next(self.db._ids)}")
                self.db.tables.setdefault(self.table_name, []).append(row)
                stored.append(row)
            return _Result(stored)
        rows = [
            r for r in self.db.tables.get(self.table_name, [])
            if all(str(r.get(c)) == str(v) for c, v in self.filters)
        ]
        if "whiteboards!inner" in self.columns:
            boards = {b["id"]: b for b in self.db.tables.get("whiteboards", [])}
            joined = []
            for r in rows:
                board = boards.get(r.get("whiteboard_id"))
                if board is None:
                    continue  # inner join
                joined.append({**r, "whiteboards": {"image_url": board["image_url"]}})
            rows = joined
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        return _Result(copy.deepcopy(rows))


class _Rpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.calls.append(("rpc", self.name, dict(self.params)))
        failure = self.db.failures.get(("rpc", self.name))
        if failure is not None:
            raise failure
        user_id = self.params["user_id"]
        labeled = {c["whiteboard_id"] for c in self.db.tables.get("chunks", []) if c["user_id"] == user_id}
        boards = self.db.tables.get("whiteboards", [])
        if self.name == "get_unlabeled_whiteboards":
            rows = [b for b in boards if b["id"] not in labeled]
            limit = self.params.get("limit_results")
            if limit is not None:
                rows = rows[:limit]
        elif self.name == "get_labeled_whiteboards":
            rows = [b for b in boards if b["id"] in labeled]
        else:
            raise ValueError(self.name)
        return _Result(copy.deepcopy(rows))


class FakeAuth:
    def __init__(self):
        self.users = {VALID_TOKEN: SimpleNamespace(id=USER_ID, email="labeler@example.com")}
        self.accounts: Dict[str, str] = {"labeler@example.com": "secret"}
        self.sign_up_error: Optional[Exception] = None
        self.reset_requests: List[tuple] = []
        self.verified: List[dict] = []
        self.session = None

    def get_user(self, jwt=None):
        user = self.users.get(jwt)
        if user is None:
            raise FakeAuthApiError("invalid JWT", status=401)
        return SimpleNamespace(user=user)

    def get_session(self):
        return self.session

    def sign_in_with_password(self, credentials):
        if self.accounts.get(credentials["email"]) != credentials["password"]:
            raise FakeAuthApiError("Invalid login credentials", status=400)
        user = SimpleNamespace(id=USER_ID, email=credentials["email"])
        self.session = SimpleNamespace(access_token="access", refresh_token="refresh", user=user)
        return SimpleNamespace(session=self.session, user=user)

    def sign_up(self, credentials):
        if self.sign_up_error is not None:
            raise self.sign_up_error
        user = SimpleNamespace(id=OTHER_USER_ID, email=credentials["email"])
        return SimpleNamespace(user=user, session=None)

    def reset_password_for_email(self, email, options=None):
        self.reset_requests.append((email, options))

    def verify_otp(self, params):
        if params["token_hash"] != "good-hash":
            raise FakeAuthApiError("Token has expired or is invalid", status=403)
        self.verified.append(params)
        return SimpleNamespace(user=None, session=None)


class FakeSupabase:
    """In-memory stand-in for a supabase ``Client`` (tables, RPC and auth)."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "whiteboards": [
                {"id": "wb-1", "image_url": "https://img.example.supabase.co/wb-1.png", "status": "pending", "created_at": "2024-01-01T00:00:00Z"},
                {"id": "wb-2", "image_url": "https://img.example.supabase.co/wb-2.png", "status": "pending", "created_at": "2024-01-02T00:00:00Z"},
                {"id": "wb-3", "image_url": "https://img.example.supabase.co/wb-3.png", "status": "pending", "created_at": "2024-01-03T00:00:00Z"},
            ],
            "chunks": [],
            "users": [],
        }
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self.auth = FakeAuth()
        self._ids = itertools.count(1)

    def table(self, name: str) -> _Query:
        return _Query(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> _Rpc:
        return _Rpc(self, name, params)


def make_chunk_row(whiteboard_id="wb-1", user_id=USER_ID, **overrides):
    row = {
        "id": f"chunk-{whiteboard_id}-{overrides.get('transcription', 'x')}",
        "whiteboard_id": whiteboard_id,
        "user_id": user_id,
        "x_min": 0.1,
        "y_min": 0.2,
        "x_max": 0.5,
        "y_max": 0.6,
        "transcription": "x",
        "confidence": "high",
        "created_at": "2024-02-01T00:00:00Z",
    }
    row.update(overrides)
    return row


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def settings():
    return Settings(supabase_url=None, supabase_key=None, resize_debounce_ms=20)


@pytest.fixture
def app(fake_supabase, settings):
    return create_app(settings=settings, supabase=fake_supabase)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def authed_client(app):
    """TestClient whose requests are already authenticated as USER_ID."""
    async def _fake_verify_token(request: Request):
        user = SimpleNamespace(id=USER_ID, email="labeler@example.com")
        request.state.user = user
        return user

    app.dependency_overrides[verify_token] = _fake_verify_token
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def chunk_row():
    """Factory for stored ``chunks`` rows."""
    return make_chunk_row
