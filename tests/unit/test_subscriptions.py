from __future__ import annotations

import pytest

from campaign_hub.domains.subscriptions.models import (
    SUBSCRIBERS_COLLECTION,
    USER_INDEX_COLLECTION,
    SubscriptionRequest,
    subscriber_key,
)
from campaign_hub.domains.subscriptions.repository import SubscriptionRepository
from campaign_hub.domains.subscriptions.service import SubscriptionService
from campaign_hub.shared.exceptions import ValidationException


@pytest.fixture
def service(fake_db):
    return SubscriptionService(SubscriptionRepository(fake_db))


def _request(**overrides):
    data = {
        "name": "Ana",
        "email": "ANA@X.COM",
        "campaignId": "c1",
        "campaignTitle": "Spring Launch",
        "campaignUrl": "/spring-launch",
    }
    data.update(overrides)
    return SubscriptionRequest.model_validate(data)


class TestSubscriberKey:
    def test_key_uses_normalized_email(self):
        assert subscriber_key("  Ana@X.com ", "c1") == "ana@x.com_c1"


class TestSubscribe:
    """Subscriber Record and User Index writes"""

    @pytest.mark.asyncio
    async def test_creates_records_without_token(self, service, fake_db):
        result = await service.subscribe(_request(), ip_address="203.0.113.7", user_agent="pytest")

        assert result.doc_id == "ana@x.com_c1"
        record = fake_db[SUBSCRIBERS_COLLECTION].docs["ana@x.com_c1"]
        assert record["email"] == "ana@x.com"
        assert record["notifications_enabled"] is False
        assert "fcm_token" not in record
        assert record["ip_address"] == "203.0.113.7"
        assert record["submitted_at"] == record["updated_at"]

        index = fake_db[USER_INDEX_COLLECTION].docs["ana@x.com"]
        assert index["name"] == "Ana"
        assert index["campaigns"]["c1"]["notifications_enabled"] is False
        assert "fcm_tokens" not in index

    @pytest.mark.asyncio
    async def test_repeat_submission_updates_same_record(self, service, fake_db):
        await service.subscribe(_request())
        first = fake_db[SUBSCRIBERS_COLLECTION].docs["ana@x.com_c1"]
        submitted_at = first["submitted_at"]

        await service.subscribe(_request(email="ana@x.com", name="Ana Maria"))

        docs = fake_db[SUBSCRIBERS_COLLECTION].docs
        assert list(docs) == ["ana@x.com_c1"]
        assert docs["ana@x.com_c1"]["name"] == "Ana Maria"
        assert docs["ana@x.com_c1"]["submitted_at"] == submitted_at
        assert len(fake_db[USER_INDEX_COLLECTION].docs) == 1

    @pytest.mark.asyncio
    async def test_token_enables_notifications_and_is_indexed(self, service, fake_db):
        await service.subscribe(_request(fcmToken="tok_A:1"))
        await service.subscribe(_request(campaignId="c2", fcmToken="tok_A:1"))

        record = fake_db[SUBSCRIBERS_COLLECTION].docs["ana@x.com_c1"]
        assert record["notifications_enabled"] is True
        assert record["fcm_token"] == "tok_A:1"
        assert record["fcm_token_updated_at"] is not None

        index = fake_db[USER_INDEX_COLLECTION].docs["ana@x.com"]
        assert set(index["campaigns"]) == {"c1", "c2"}
        assert index["fcm_tokens"]["tok_A:1"]["campaigns"] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_resubscribe_without_token_keeps_index_tokens(self, service, fake_db):
        await service.subscribe(_request(fcmToken="tok_A"))
        await service.subscribe(_request())

        record = fake_db[SUBSCRIBERS_COLLECTION].docs["ana@x.com_c1"]
        assert record["notifications_enabled"] is False
        assert "tok_A" in fake_db[USER_INDEX_COLLECTION].docs["ana@x.com"]["fcm_tokens"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides, field", [
        ({"name": ""}, "name"),
        ({"email": None}, "email"),
        ({"campaignId": "  "}, "campaignId"),
        ({"email": "not-an-email"}, "email"),
        ({"campaignId": "c1.bad"}, "campaignId"),
        ({"fcmToken": "tok$bad"}, "fcmToken"),
    ])
    async def test_invalid_input_writes_nothing(self, service, fake_db, overrides, field):
        with pytest.raises(ValidationException) as exc_info:
            await service.subscribe(_request(**overrides))

        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"field": field}
        assert fake_db[SUBSCRIBERS_COLLECTION].docs == {}
        assert fake_db[USER_INDEX_COLLECTION].docs == {}


class TestCheck:
    @pytest.mark.asyncio
    async def test_check_is_case_insensitive(self, service):
        await service.subscribe(_request())

        result = await service.check("Ana@x.com", "c1")

        assert result.has_subscribed is True
        assert result.data["id"] == "ana@x.com_c1"
        assert result.data["campaignId"] == "c1"
        assert result.data["notificationsEnabled"] is False

    @pytest.mark.asyncio
    async def test_check_unknown_subscription(self, service):
        result = await service.check("bob@x.com", "c1")

        assert result.has_subscribed is False
        assert result.data is None

    @pytest.mark.asyncio
    async def test_check_requires_both_parameters(self, service):
        with pytest.raises(ValidationException):
            await service.check("ana@x.com", None)


class TestIndexes:
    @pytest.mark.asyncio
    async def test_init_creates_indexes(self, service, fake_db):
        await service.init()

        assert len(fake_db[SUBSCRIBERS_COLLECTION].indexes) == 2
