from __future__ import annotations

import copy
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import OperationFailure

from campaign_hub.domains.push.repository import PushRepository
from campaign_hub.domains.push.schemas import BroadcastRequest
from campaign_hub.domains.push.service import PushService
from campaign_hub.domains.subscriptions.models import (
    SUBSCRIBERS_COLLECTION,
    USER_INDEX_COLLECTION,
    SubscriptionRequest,
)
from campaign_hub.domains.subscriptions.repository import SubscriptionRepository
from campaign_hub.domains.subscriptions.service import SubscriptionService
from campaign_hub.shared.clients.push_client import (
    REASON_NOT_REGISTERED,
    MulticastReport,
    TokenResult,
)
from campaign_hub.shared.exceptions import ValidationException


@pytest.fixture
def subscriptions(fake_db):
    return SubscriptionService(SubscriptionRepository(fake_db))


@pytest.fixture
def repo(fake_db):
    return PushRepository(fake_db, use_transactions=False)


@pytest.fixture
def push_service(repo, mock_push_client):
    return PushService(repo, mock_push_client)


async def _subscribe(subscriptions, email, campaign_id="c1", token=None):
    await subscriptions.subscribe(SubscriptionRequest(
        name=email.split("@")[0],
        email=email,
        campaign_id=campaign_id,
        fcm_token=token,
    ))


def _report(*outcomes):
    results = []
    for token, reason in outcomes:
        if reason is None:
            results.append(TokenResult(token=token, success=True, message_id=f"projects/p/messages/{token}"))
        else:
            results.append(TokenResult(token=token, success=False, reason=reason, error="Requested entity was not found."))
    return MulticastReport(results=results)


class TestEnabledTokens:
    @pytest.mark.asyncio
    async def test_only_enabled_distinct_tokens(self, subscriptions, repo):
        await _subscribe(subscriptions, "ana@x.com", token="tok_A")
        await _subscribe(subscriptions, "bob@x.com", token="tok_A")
        await _subscribe(subscriptions, "cy@x.com", token="tok_C")
        await _subscribe(subscriptions, "dee@x.com")
        await _subscribe(subscriptions, "eve@x.com", campaign_id="c2", token="tok_E")

        assert await repo.enabled_tokens("c1") == ["tok_A", "tok_C"]

    @pytest.mark.asyncio
    async def test_campaign_stats(self, subscriptions, repo):
        await _subscribe(subscriptions, "ana@x.com", token="tok_A")
        await _subscribe(subscriptions, "dee@x.com")

        assert await repo.campaign_stats("c1") == (2, 1)


class TestBroadcast:
    """Campaign fan-out and invalid-token cleanup"""

    @pytest.mark.asyncio
    async def test_no_subscribers_skips_send(self, push_service, mock_push_client):
        result = await push_service.broadcast(BroadcastRequest(campaign_id="c1", title="Hi", body="News"))

        assert result.success is True
        assert result.sent == 0
        assert result.message == "No subscribers with notifications enabled for this campaign"
        mock_push_client.send_multicast.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_failure_cleans_up_invalid_token(
        self, subscriptions, push_service, mock_push_client, fake_db
    ):
        await _subscribe(subscriptions, "ana@x.com", token="tok_A")
        await _subscribe(subscriptions, "bob@x.com", token="tok_B")
        mock_push_client.send_multicast.return_value = _report(
            ("tok_A", None),
            ("tok_B", REASON_NOT_REGISTERED),
        )

        result = await push_service.broadcast(
            BroadcastRequest(campaign_id="c1", title="Sale", body="Starts now", url="/spring")
        )

        assert result.model_dump(by_alias=True, include={"sent", "failed", "cleaned_up", "total"}) == {
            "total": 2, "sent": 1, "failed": 1, "cleanedUp": 1,
        }
        args, kwargs = mock_push_client.send_multicast.call_args
        assert args[0] == ["tok_A", "tok_B"]
        assert kwargs["data"]["campaignId"] == "c1"
        assert kwargs["data"]["url"] == "/spring"

        subscribers = fake_db[SUBSCRIBERS_COLLECTION].docs
        bob = subscribers["bob@x.com_c1"]
        assert "fcm_token" not in bob
        assert bob["notifications_enabled"] is False
        assert bob["token_removed_reason"].endswith(f"({REASON_NOT_REGISTERED})")
        assert subscribers["ana@x.com_c1"]["fcm_token"] == "tok_A"
        assert subscribers["ana@x.com_c1"]["notifications_enabled"] is True

        index = fake_db[USER_INDEX_COLLECTION].docs
        assert index["bob@x.com"]["fcm_tokens"] == {}
        assert index["bob@x.com"]["campaigns"]["c1"]["notifications_enabled"] is False
        assert "tok_A" in index["ana@x.com"]["fcm_tokens"]

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_token(self, subscriptions, push_service, mock_push_client, fake_db):
        await _subscribe(subscriptions, "ana@x.com", token="tok_A")
        mock_push_client.send_multicast.return_value = _report(("tok_A", "unavailable"))

        result = await push_service.broadcast(BroadcastRequest(campaign_id="c1", title="Hi", body="News"))

        assert (result.sent, result.failed, result.cleaned_up) == (0, 1, 0)
        assert fake_db[SUBSCRIBERS_COLLECTION].docs["ana@x.com_c1"]["fcm_token"] == "tok_A"

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_not_raised(self, subscriptions, mock_push_client):
        repo = AsyncMock(spec=PushRepository)
        repo.enabled_tokens.return_value = ["tok_B"]
        repo.remove_invalid_tokens.side_effect = OperationFailure("Transaction numbers are only allowed on a replica set")
        mock_push_client.send_multicast.return_value = _report(("tok_B", REASON_NOT_REGISTERED))

        result = await PushService(repo, mock_push_client).broadcast(
            BroadcastRequest(campaign_id="c1", title="Hi", body="News")
        )

        assert (result.sent, result.failed, result.cleaned_up) == (0, 1, 0)

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, push_service):
        with pytest.raises(ValidationException) as exc_info:
            await push_service.broadcast(BroadcastRequest(campaign_id="c1", title="Hi"))

        assert "body" in exc_info.value.detail


class TestRemoveInvalidTokens:
    @pytest.mark.asyncio
    async def test_token_shared_across_campaigns(self, subscriptions, repo, fake_db):
        await _subscribe(subscriptions, "ana@x.com", campaign_id="c1", token="tok_A")
        await _subscribe(subscriptions, "ana@x.com", campaign_id="c2", token="tok_A")

        modified = await repo.remove_invalid_tokens({"tok_A": REASON_NOT_REGISTERED}, datetime.now(timezone.utc))

        assert modified == 3
        for key in ("ana@x.com_c1", "ana@x.com_c2"):
            assert fake_db[SUBSCRIBERS_COLLECTION].docs[key]["notifications_enabled"] is False
        campaigns = fake_db[USER_INDEX_COLLECTION].docs["ana@x.com"]["campaigns"]
        assert campaigns["c1"]["notifications_enabled"] is False
        assert campaigns["c2"]["notifications_enabled"] is False

    @pytest.mark.asyncio
    async def test_no_failures_is_a_no_op(self, repo):
        assert await repo.remove_invalid_tokens({}, datetime.now(timezone.utc)) == 0

    @pytest.mark.asyncio
    async def test_stats_requires_campaign(self, push_service):
        with pytest.raises(ValidationException):
            await push_service.stats(None)


class FakeTransaction:
    """Rolls the fake collections back when the block raises"""

    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        self.snapshot = {
            name: copy.deepcopy(collection.docs)
            for name, collection in self.session.db.collections.items()
        }
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            for name, docs in self.snapshot.items():
                self.session.db.collections[name].docs = docs
            self.session.outcome = "aborted"
        else:
            self.session.outcome = "committed"
        return False


class FakeSession:
    def __init__(self, db):
        self.db = db
        self.outcome = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def start_transaction(self):
        return FakeTransaction(self)


class FakeMongoClient:
    def __init__(self, db):
        self.db = db
        self.sessions = []

    async def start_session(self):
        session = FakeSession(self.db)
        self.sessions.append(session)
        return session


class TestTransactionalCleanup:
    @pytest.fixture
    def mongo_client(self, fake_db):
        fake_db.client = FakeMongoClient(fake_db)
        return fake_db.client

    @pytest.fixture
    def write_sessions(self, fake_db, monkeypatch):
        """Records the session every bulk write runs in"""
        seen = []
        for name in (SUBSCRIBERS_COLLECTION, USER_INDEX_COLLECTION):
            collection = fake_db[name]
            original = collection.bulk_write

            async def recording(requests, ordered=True, session=None, _name=name, _original=original):
                seen.append((_name, session))
                return await _original(requests, ordered=ordered, session=session)

            monkeypatch.setattr(collection, "bulk_write", recording)
        return seen

    @pytest.mark.asyncio
    async def test_both_writes_share_one_session(
        self, subscriptions, fake_db, mongo_client, write_sessions, mock_push_client
    ):
        await _subscribe(subscriptions, "bob@x.com", token="tok_B")
        mock_push_client.send_multicast.return_value = _report(("tok_B", REASON_NOT_REGISTERED))
        service = PushService(PushRepository(fake_db, use_transactions=True), mock_push_client)

        result = await service.broadcast(BroadcastRequest(campaign_id="c1", title="Hi", body="News"))

        assert result.cleaned_up == 1
        assert [name for name, _ in write_sessions] == [SUBSCRIBERS_COLLECTION, USER_INDEX_COLLECTION]
        session = mongo_client.sessions[0]
        assert all(s is session for _, s in write_sessions)
        assert session.outcome == "committed"
        assert fake_db[SUBSCRIBERS_COLLECTION].docs["bob@x.com_c1"]["notifications_enabled"] is False

    @pytest.mark.asyncio
    async def test_second_write_failure_rolls_back_everything(
        self, subscriptions, fake_db, mongo_client, write_sessions, mock_push_client, monkeypatch
    ):
        await _subscribe(subscriptions, "bob@x.com", token="tok_B")
        mock_push_client.send_multicast.return_value = _report(("tok_B", REASON_NOT_REGISTERED))
        index = fake_db[USER_INDEX_COLLECTION]
        recording = index.bulk_write

        async def failing(requests, ordered=True, session=None):
            await recording(requests, ordered=ordered, session=session)
            raise OperationFailure("WriteConflict")

        monkeypatch.setattr(index, "bulk_write", failing)
        service = PushService(PushRepository(fake_db, use_transactions=True), mock_push_client)

        result = await service.broadcast(BroadcastRequest(campaign_id="c1", title="Hi", body="News"))

        assert (result.sent, result.failed, result.cleaned_up) == (0, 1, 0)
        assert mongo_client.sessions[0].outcome == "aborted"
        assert write_sessions[0][1] is write_sessions[1][1]
        bob = fake_db[SUBSCRIBERS_COLLECTION].docs["bob@x.com_c1"]
        assert bob["fcm_token"] == "tok_B"
        assert bob["notifications_enabled"] is True
