from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from campaign_hub.core.celery_config import CeleryConfig, create_celery_app
from campaign_hub.domains.push import tasks
from campaign_hub.domains.push.schemas import BroadcastResult


class TestBroadcastTask:
    def test_task_runs_broadcast_and_closes_container(self):
        container = MagicMock()
        container.push_service.broadcast = AsyncMock(return_value=BroadcastResult(
            message="Notifications sent", total=3, sent=2, failed=1, cleaned_up=1,
        ))
        container.aclose = AsyncMock()

        with patch.object(tasks, "ServiceContainer", return_value=container), \
                patch.object(tasks, "get_settings"):
            result = tasks.broadcast_campaign_notification("c1", "Sale", "Starts now", url="/spring")

        request = container.push_service.broadcast.call_args.args[0]
        assert request.campaign_id == "c1"
        assert request.url == "/spring"
        assert result["cleanedUp"] == 1
        assert result["sent"] == 2
        container.aclose.assert_awaited_once()

    def test_celery_app_routes_push_tasks(self, settings):
        app = create_celery_app(settings)

        assert app.conf.task_routes == CeleryConfig.task_routes
        assert app.conf.broker_url == settings.celery_broker_url
