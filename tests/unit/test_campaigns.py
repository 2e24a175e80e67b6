from __future__ import annotations

import pytest

from campaign_hub.domains.campaigns.service import (
    DEFAULT_HOME_TITLE,
    campaign_form_type,
    normalize_slug,
)


class TestCampaignFormType:
    @pytest.mark.parametrize("forms, expected", [
        ([{"subscribe_form": {}}], "subscribe"),
        ([{"detailed_registration_form": {"title": "Register"}}], "detailed"),
        ([{"demo_request_form": {}}], "demo"),
        ([], "subscribe"),
        (None, "subscribe"),
        ([{"hero_banner": {}}], "subscribe"),
    ])
    def test_variant_from_block(self, forms, expected):
        assert campaign_form_type({"forms": forms}) == expected

    def test_only_first_block_is_read(self):
        campaign = {"forms": [{"demo_request_form": {}}, {"subscribe_form": {}}]}

        assert campaign_form_type(campaign) == "demo"

    def test_priority_within_first_block(self):
        campaign = {"forms": [{"demo_request_form": {}, "detailed_registration_form": {}}]}

        assert campaign_form_type(campaign) == "detailed"

    def test_normalize_slug(self):
        assert normalize_slug("spring") == "/spring"
        assert normalize_slug("/spring") == "/spring"


class TestCampaignService:
    @pytest.mark.asyncio
    async def test_campaign_by_slug(self, container, upstream):
        upstream.add("campaigns", {"uid": "c1", "title": "Spring Launch", "url": "/spring-launch"})

        campaign = await container.campaign_service.get_campaign_by_slug("spring-launch")

        assert campaign["uid"] == "c1"
        assert await container.campaign_service.get_campaign_by_slug("nope") is None

    @pytest.mark.asyncio
    async def test_outage_degrades_to_defaults(self, container, upstream):
        upstream.fail_status = 503

        context = await container.campaign_service.home_page_context()

        assert context["title"] == DEFAULT_HOME_TITLE
        assert context["campaigns"] == []
