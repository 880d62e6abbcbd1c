"""
Shared fixtures: an in-memory Supabase stand-in, signed test tokens and
azure.functions request builders.
"""

import itertools
import json
import time
import uuid
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import azure.functions as func
import jwt
import pytest
from postgrest.exceptions import APIError

from shared import supabase_client
from shared.auth import TOKEN_AUDIENCE

TEST_JWT_SECRET = "test-jwt-secret-that-is-long-enough-for-hs256"
STORAGE_BASE_URL = "https://test.supabase.co/storage/v1/object/public"

# Columns that must stay unique per table, mirroring the store's constraints
UNIQUE_KEYS = {
    "profiles": [("email",), ("auth_user_id",)],
    "benchmarks": [("dimension_id", "industry_id")],
}


# =============================================================================
# In-memory Supabase
# =============================================================================

class FakeQuery:
    """Chainable query over one in-memory table."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.operation = "select"
        self.payload: Any = None
        self.filters: List[Callable[[Dict], bool]] = []
        self.order_by: Optional[tuple] = None
        self.row_limit: Optional[int] = None

    def select(self, columns: str = "*"):
        self.operation = "select"
        return self

    def insert(self, payload):
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.operation = "update"
        self.payload = payload
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, column: str, value):
        self.filters.append(lambda row: self.db.resolve(self.table_name, row, column) == value)
        return self

    def neq(self, column: str, value):
        self.filters.append(lambda row: self.db.resolve(self.table_name, row, column) != value)
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, count: int):
        self.row_limit = count
        return self

    def _matching(self) -> List[Dict]:
        return [row for row in self.db.tables.setdefault(self.table_name, []) if all(f(row) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table_name, self.operation))
        failure = self.db.failures.pop((self.table_name, self.operation), None)
        if failure is not None:
            raise failure

        if self.operation == "insert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            return SimpleNamespace(data=[self.db.insert_row(self.table_name, dict(row)) for row in rows])

        if self.operation == "update":
            matched = self._matching()
            for row in matched:
                candidate = {**row, **self.payload}
                self.db.check_unique(self.table_name, candidate, ignore=row)
                row.update(self.payload)
            return SimpleNamespace(data=[dict(row) for row in matched])

        if self.operation == "delete":
            matched = self._matching()
            table = self.db.tables[self.table_name]
            self.db.tables[self.table_name] = [row for row in table if row not in matched]
            return SimpleNamespace(data=[dict(row) for row in matched])

        rows = [dict(row) for row in self._matching()]
        if self.order_by:
            column, desc = self.order_by
            rows.sort(key=lambda row: row.get(column) or "", reverse=desc)
        if self.row_limit is not None:
            rows = rows[:self.row_limit]
        return SimpleNamespace(data=rows)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path: str, data: bytes, file_options: Optional[Dict] = None):
        self.storage.upload_attempts.append(path)
        if self.storage.fail_upload and self.storage.fail_upload(path):
            raise Exception(f"Upload rejected for {path}")
        self.storage.objects[path] = {"data": data, "options": file_options or {}}
        return SimpleNamespace(path=path)

    def get_public_url(self, path: str) -> str:
        return f"{STORAGE_BASE_URL}/{self.name}/{path}"

    def remove(self, paths: List[str]):
        self.storage.removed.extend(paths)
        for path in paths:
            self.storage.objects.pop(path, None)
        return []


class FakeStorage:
    def __init__(self):
        self.objects: Dict[str, Dict] = {}
        self.upload_attempts: List[str] = []
        self.removed: List[str] = []
        self.fail_upload: Optional[Callable[[str], bool]] = None

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


class FakeAuthAdmin:
    def __init__(self):
        self.users: Dict[str, SimpleNamespace] = {}
        self.deleted: List[str] = []
        self.password_updates: List[tuple] = []
        self.create_error: Optional[Exception] = None
        self.update_error: Optional[Exception] = None
        self.listed_pages: List[Optional[int]] = []

    def create_user(self, attributes: Dict):
        if self.create_error is not None:
            raise self.create_error
        email = attributes["email"].lower()
        if any(user.email == email for user in self.users.values()):
            raise Exception("A user with this email address has already been registered")
        user = SimpleNamespace(
            id=str(uuid.uuid4()),
            email=email,
            password=attributes.get("password"),
            email_confirmed=attributes.get("email_confirm", False),
            user_metadata=attributes.get("user_metadata", {}),
        )
        self.users[user.id] = user
        return SimpleNamespace(user=user)

    def add_user(self, email: str) -> str:
        user = SimpleNamespace(id=str(uuid.uuid4()), email=email, password=None, user_metadata={})
        self.users[user.id] = user
        return user.id

    def delete_user(self, user_id: str):
        self.deleted.append(user_id)
        self.users.pop(user_id, None)

    def update_user_by_id(self, user_id: str, attributes: Dict):
        if self.update_error is not None:
            raise self.update_error
        self.password_updates.append((user_id, attributes.get("password")))
        return SimpleNamespace(user=self.users.get(user_id))

    def list_users(self, page: Optional[int] = None, per_page: Optional[int] = None):
        self.listed_pages.append(page)
        users = list(self.users.values())
        if page is None or per_page is None:
            return users
        start = (page - 1) * per_page
        return users[start:start + per_page]


class FakeSupabase:
    """Stands in for the supabase ``Client`` returned by ``create_client``."""

    def __init__(self):
        self.tables: Dict[str, List[Dict]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self.storage = FakeStorage()
        self.auth = SimpleNamespace(admin=FakeAuthAdmin())
        self._clock = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, operation: str, error: Optional[Exception] = None):
        """Make the next ``operation`` on ``table`` raise."""
        self.failures[(table, operation)] = error or APIError({"code": "XX000", "message": f"{operation} failed"})

    def resolve(self, table: str, row: Dict, column: str):
        if "." not in column:
            return row.get(column)
        # Embedded filter such as "dimensions.assessment_id"
        related, related_column = column.split(".", 1)
        foreign_key = f"{related.rstrip('s')}_id"
        for related_row in self.tables.get(related, []):
            if related_row.get("id") == row.get(foreign_key):
                return related_row.get(related_column)
        return None

    def check_unique(self, table: str, row: Dict, ignore: Optional[Dict] = None):
        for key in UNIQUE_KEYS.get(table, []):
            values = tuple(row.get(column) for column in key)
            if any(value is None for value in values):
                continue
            for existing in self.tables.get(table, []):
                if existing is ignore:
                    continue
                if tuple(existing.get(column) for column in key) == values:
                    raise APIError({
                        "code": supabase_client.UNIQUE_VIOLATION,
                        "message": f"duplicate key value violates unique constraint on {key}",
                    })

    def insert_row(self, table: str, row: Dict) -> Dict:
        self.check_unique(table, row)
        tick = next(self._clock)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", f"2024-01-01T00:00:{tick:02d}+00:00")
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    def seed(self, table: str, **row) -> Dict:
        return self.insert_row(table, row)


@pytest.fixture
def fake_supabase(monkeypatch) -> FakeSupabase:
    fake = FakeSupabase()
    monkeypatch.setattr(supabase_client, "_supabase_client", fake)
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    return fake


# =============================================================================
# Callers
# =============================================================================

def make_token(sub: str, secret: str = TEST_JWT_SECRET, expires_in: int = 3600, audience: str = TOKEN_AUDIENCE) -> str:
    now = int(time.time())
    return jwt.encode(
        {"sub": sub, "email": f"{sub}@example.com", "aud": audience, "role": "authenticated", "iat": now, "exp": now + expires_in},
        secret,
        algorithm="HS256",
    )


def seed_caller(fake: FakeSupabase, access_level: Optional[str] = None, role: Optional[str] = None, client_id: Optional[str] = None) -> Dict[str, str]:
    """Create a profile for a caller and return its IDs and bearer token."""
    auth_user_id = str(uuid.uuid4())
    profile = fake.seed(
        "profiles",
        auth_user_id=auth_user_id,
        name="Caller",
        email=f"caller-{auth_user_id[:8]}@example.com",
        username=f"caller{auth_user_id[:8]}",
        access_level=access_level,
        role=role,
        client_id=client_id,
    )
    return {"auth_user_id": auth_user_id, "profile_id": profile["id"], "token": make_token(auth_user_id)}


@pytest.fixture
def tenant(fake_supabase) -> Dict:
    return fake_supabase.seed("clients", name="Acme")


@pytest.fixture
def super_admin(fake_supabase) -> Dict[str, str]:
    return seed_caller(fake_supabase, access_level="super_admin")


@pytest.fixture
def client_admin(fake_supabase, tenant) -> Dict[str, str]:
    return seed_caller(fake_supabase, access_level="client_admin", client_id=tenant["id"])


@pytest.fixture
def member(fake_supabase, tenant) -> Dict[str, str]:
    return seed_caller(fake_supabase, access_level="member", client_id=tenant["id"])


# =============================================================================
# Requests
# =============================================================================

def _headers(token: Optional[str], content_type: Optional[str]) -> Dict[str, str]:
    headers = {}
    if content_type:
        headers["Content-Type"] = content_type
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def json_request(
    method: str,
    path: str,
    body: Any = None,
    token: Optional[str] = None,
    route_params: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
    raw_body: Optional[bytes] = None
) -> func.HttpRequest:
    if raw_body is None:
        raw_body = json.dumps(body).encode("utf-8") if body is not None else b""
    return func.HttpRequest(
        method=method,
        url=f"http://localhost:7071/api/{path}",
        headers=_headers(token, "application/json"),
        params=params or {},
        route_params=route_params or {},
        body=raw_body,
    )


def multipart_request(
    method: str,
    path: str,
    fields: Optional[Dict[str, str]] = None,
    files: Optional[Dict[str, tuple]] = None,
    token: Optional[str] = None,
    route_params: Optional[Dict[str, str]] = None
) -> func.HttpRequest:
    """Build a multipart request; ``files`` maps field -> (filename, content_type, bytes)."""
    boundary = "testboundary7MA4YWxkTrZu0gW"
    body = b""

    for name, value in (fields or {}).items():
        body += (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n'
            f"\r\n"
            f"{value}\r\n"
        ).encode("utf-8")

    for name, (filename, content_type, data) in (files or {}).items():
        body += (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            f"Content-Type: {content_type}\r\n"
            f"\r\n"
        ).encode("utf-8") + data + b"\r\n"

    body += f"--{boundary}--\r\n".encode("utf-8")

    return func.HttpRequest(
        method=method,
        url=f"http://localhost:7071/api/{path}",
        headers=_headers(token, f"multipart/form-data; boundary={boundary}"),
        params={},
        route_params=route_params or {},
        body=body,
    )


def response_json(response: func.HttpResponse) -> Any:
    return json.loads(response.get_body())


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
