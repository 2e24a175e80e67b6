"""
Pytest configuration and shared fixtures.

Provides an in-memory stand-in for the Motor database, a scripted upstream
for Contentstack and Slack, and a fully wired service container.
"""

import copy
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from pymongo import UpdateMany

from campaign_hub.core.config import Settings
from campaign_hub.core.container import ServiceContainer
from campaign_hub.main import create_app
from campaign_hub.shared.clients.email_client import EmailClient
from campaign_hub.shared.clients.push_client import PushClient

_MISSING = object()


def _get_path(doc: Dict[str, Any], path: str) -> Any:
    node: Any = doc
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _set_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    node = doc
    for part in parts[:-1]:
        node = node.setdefault(part, {})
    node[parts[-1]] = value


def _unset_path(doc: Dict[str, Any], path: str) -> None:
    parts = path.split(".")
    node = doc
    for part in parts[:-1]:
        node = node.get(part)
        if not isinstance(node, dict):
            return
    node.pop(parts[-1], None)


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, cond in query.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in cond):
                return False
            continue
        value = _get_path(doc, key)
        present = value is not _MISSING
        compared = value if present else None
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$in" and compared not in arg:
                    return False
                if op == "$nin" and compared in arg:
                    return False
                if op == "$exists" and present != bool(arg):
                    return False
        elif compared != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """The subset of AsyncIOMotorCollection the repositories use."""

    def __init__(self, name: str):
        self.name = name
        self.docs: Dict[Any, Dict[str, Any]] = {}
        self.indexes: List[Tuple[Any, Dict[str, Any]]] = []

    def _apply(self, doc: Dict[str, Any], update: Dict[str, Any], inserting: bool) -> bool:
        before = copy.deepcopy(doc)
        for path, value in update.get("$set", {}).items():
            _set_path(doc, path, value)
        if inserting:
            for path, value in update.get("$setOnInsert", {}).items():
                _set_path(doc, path, value)
        for path in update.get("$unset", {}):
            _unset_path(doc, path)
        for path, value in update.get("$addToSet", {}).items():
            current = _get_path(doc, path)
            items = list(current) if isinstance(current, list) else []
            if value not in items:
                items.append(value)
            _set_path(doc, path, items)
        return doc != before

    def _update(self, query, update, upsert=False, many=False):
        matched = [doc for doc in self.docs.values() if _matches(doc, query)]
        if not many:
            matched = matched[:1]
        modified = 0
        for doc in matched:
            if self._apply(doc, update, inserting=False):
                modified += 1
        upserted_id = None
        if not matched and upsert:
            doc = {k: v for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
            self._apply(doc, update, inserting=True)
            upserted_id = doc["_id"]
            self.docs[upserted_id] = doc
        return SimpleNamespace(matched_count=len(matched), modified_count=modified, upserted_id=upserted_id)

    async def update_one(self, query, update, upsert=False, session=None):
        return self._update(query, update, upsert=upsert)

    async def update_many(self, query, update, upsert=False, session=None):
        return self._update(query, update, upsert=upsert, many=True)

    async def bulk_write(self, requests, ordered=True, session=None):
        modified = 0
        for op in requests:
            result = self._update(op._filter, op._doc, many=isinstance(op, UpdateMany))
            modified += result.modified_count
        return SimpleNamespace(modified_count=modified)

    async def insert_one(self, document, session=None):
        self.docs[document["_id"]] = copy.deepcopy(document)
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one(self, query, projection=None, session=None):
        for doc in self.docs.values():
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None, projection=None, session=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs.values() if _matches(d, query or {})])

    async def count_documents(self, query, session=None):
        return sum(1 for doc in self.docs.values() if _matches(doc, query))

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return "_".join(f"{k}_{d}" for k, d in keys)


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeUpstream:
    """Scripted Contentstack (delivery + management) and Slack endpoints."""

    def __init__(self):
        self.entries: Dict[str, List[Dict[str, Any]]] = {}
        self.created: List[Dict[str, Any]] = []
        self.slack_messages: List[Dict[str, Any]] = []
        self.slack_error: Optional[str] = None
        self.fail_status: Optional[int] = None
        self.requests: List[httpx.Request] = []

    def add(self, content_type: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        self.entries.setdefault(content_type, []).append(entry)
        return entry

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "slack.com":
            body = json.loads(request.content)
            self.slack_messages.append(body)
            if self.slack_error:
                return httpx.Response(200, json={"ok": False, "error": self.slack_error})
            return httpx.Response(200, json={"ok": True, "ts": "1700000000.000100"})

        if self.fail_status:
            return httpx.Response(self.fail_status, json={"error_message": "Upstream failure", "error_code": 1})

        # /v3/content_types/<type>/entries[/<uid>]
        parts = request.url.path.strip("/").split("/")
        content_type = parts[2]
        uid = parts[4] if len(parts) > 4 else None

        if request.method == "POST":
            entry = json.loads(request.content)["entry"]
            created = {"uid": f"blt{len(self.created) + 1:04d}", **entry}
            self.created.append(created)
            self.add(content_type, created)
            return httpx.Response(201, json={"notice": "Entry created successfully.", "entry": created})

        items = self.entries.get(content_type, [])
        if uid:
            for entry in items:
                if entry["uid"] == uid:
                    return httpx.Response(200, json={"entry": entry})
            return httpx.Response(404, json={"error_message": "The requested object doesn't exist.", "error_code": 141})

        query = request.url.params.get("query")
        if query:
            conditions = json.loads(query)
            items = [e for e in items if all(e.get(k) == v for k, v in conditions.items())]
        return httpx.Response(200, json={"entries": items})


@pytest.fixture
def settings():
    """Settings with every integration configured and no .env lookup"""
    return Settings(
        _env_file=None,
        log_json=False,
        mongodb_transactions=False,
        app_url="https://campaigns.example.com",
        contentstack_api_key="test_api_key",
        contentstack_delivery_token="test_delivery_token",
        contentstack_management_token="test_management_token",
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="noreply@example.com",
        smtp_password="secret",
        slack_bot_token="xoxb-test",
        slack_notifications_enabled=True,
        firebase_project_id="campaign-hub-test",
        firebase_vapid_key="test_vapid_key",
    )


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def mock_email_client():
    client = AsyncMock(spec=EmailClient)
    client.send.return_value = {"messageId": "<msg-1@example.com>", "accepted": ["ana@x.com"]}
    return client


@pytest.fixture
def mock_push_client():
    client = AsyncMock(spec=PushClient)
    client.describe.return_value = {"initialized": False, "appName": "campaign-hub"}
    return client


@pytest_asyncio.fixture
async def container(settings, fake_db, upstream, mock_email_client, mock_push_client):
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    container = ServiceContainer(
        settings,
        database=fake_db,
        http=http,
        email_client=mock_email_client,
        push_client=mock_push_client,
    )
    yield container
    await container.aclose()


@pytest_asyncio.fixture
async def client(settings, container):
    """Create test HTTP client"""
    app = create_app(settings, container=container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
