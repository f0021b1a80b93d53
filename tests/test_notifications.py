"""
Tests for notification services (lotbot/common/notifications.py)
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

import httpx

from lotbot.common.notifications import (
    NotificationProvider,
    LineNotifier,
    WebhookNotifier,
    ConsoleNotifier,
    NotificationManager,
    LINE_PUSH_URL,
)
from lotbot.common.models import NotificationPayload, RunSummary
from lotbot.common.config import (
    NotificationsConfig,
    NotificationRetryConfig,
    LineConfig,
    WebhookConfig,
)
from lotbot.common.errors import NotificationError


def fast_retry(max_attempts: int = 3) -> NotificationRetryConfig:
    return NotificationRetryConfig(max_attempts=max_attempts, delay_seconds=0)


class TestNotificationPayload:
    def test_create_basic_payload(self):
        payload = NotificationPayload(title="Test Title", message="Test message")
        assert payload.urgency == "normal"
        assert payload.summary is None


class TestConsoleNotifier:
    @pytest.mark.asyncio
    async def test_send_basic_payload(self, capsys):
        notifier = ConsoleNotifier()
        payload = NotificationPayload(title="抽選申込結果", message="成功1件 失敗0件 スキップ0件 キャンセル0件")

        result = await notifier.send(payload)

        assert result is True
        captured = capsys.readouterr()
        assert "抽選申込結果" in captured.out
        assert "成功1件" in captured.out


class TestLineNotifier:
    @pytest.mark.asyncio
    async def test_send_success(self):
        notifier = LineNotifier(channel_token="token", to="U123")

        mock_response = MagicMock()
        mock_response.status_code = 200
        notifier.client.post = AsyncMock(return_value=mock_response)

        result = await notifier.send(NotificationPayload(title="t", message="hello"))

        assert result is True
        call_args = notifier.client.post.call_args
        assert call_args[0][0] == LINE_PUSH_URL
        assert call_args[1]["headers"]["Authorization"] == "Bearer token"
        assert call_args[1]["json"] == {"to": "U123", "messages": [{"type": "text", "text": "hello"}]}

    @pytest.mark.asyncio
    async def test_send_failure_status(self):
        notifier = LineNotifier(channel_token="token", to="U123")

        mock_response = MagicMock()
        mock_response.status_code = 401
        mock_response.text = "Authentication failed"
        notifier.client.post = AsyncMock(return_value=mock_response)

        assert await notifier.send(NotificationPayload(title="t", message="m")) is False

    @pytest.mark.asyncio
    async def test_send_transport_error(self):
        notifier = LineNotifier(channel_token="token", to="U123")
        notifier.client.post = AsyncMock(side_effect=httpx.ConnectError("boom"))

        assert await notifier.send(NotificationPayload(title="t", message="m")) is False

    def test_message_truncated(self):
        notifier = LineNotifier(channel_token="token", to="U123")
        payload = NotificationPayload(title="t", message="x" * 6000)
        assert len(notifier._format_text(payload)) == 5000


class TestWebhookNotifier:
    @pytest.mark.asyncio
    async def test_send_success(self):
        notifier = WebhookNotifier("https://hooks.example.com/abc")

        mock_response = MagicMock()
        mock_response.status_code = 204
        notifier.client.post = AsyncMock(return_value=mock_response)

        result = await notifier.send(NotificationPayload(title="抽選申込結果", message="成功1件"))

        assert result is True
        body = notifier.client.post.call_args[1]["json"]
        assert body["text"] == "抽選申込結果: 成功1件"

    @pytest.mark.asyncio
    async def test_send_failure(self):
        notifier = WebhookNotifier("https://hooks.example.com/abc")

        mock_response = MagicMock()
        mock_response.status_code = 500
        notifier.client.post = AsyncMock(return_value=mock_response)

        assert await notifier.send(NotificationPayload(title="t", message="m")) is False


class TestNotificationManager:
    def test_init_with_no_providers_enabled(self):
        manager = NotificationManager(NotificationsConfig())

        assert len(manager.providers) == 1
        assert isinstance(manager.providers[0], ConsoleNotifier)

    def test_init_with_line(self):
        config = NotificationsConfig(line=LineConfig(enabled=True, channel_token="token", to="U123"))
        manager = NotificationManager(config)

        assert len(manager.providers) == 2
        assert any(isinstance(p, LineNotifier) for p in manager.providers)

    def test_line_without_token_not_added(self):
        config = NotificationsConfig(line=LineConfig(enabled=True))
        manager = NotificationManager(config)

        assert len(manager.providers) == 1

    def test_init_with_webhook(self):
        config = NotificationsConfig(webhook=WebhookConfig(enabled=True, url="https://hooks.example.com"))
        manager = NotificationManager(config)

        assert any(isinstance(p, WebhookNotifier) for p in manager.providers)

    @pytest.mark.asyncio
    async def test_notify_summary_message(self):
        manager = NotificationManager(NotificationsConfig(label="lotbot", retry=fast_retry()))
        mock_provider = MagicMock(spec=NotificationProvider)
        mock_provider.name = "mock"
        mock_provider.send = AsyncMock(return_value=True)
        manager.providers = [mock_provider]

        summary = RunSummary(expected_total=3).with_skipped(1).reconcile()
        await manager.notify_summary(summary, account="group-1/12345678")

        payload = mock_provider.send.call_args[0][0]
        assert payload.title == "抽選申込結果"
        assert payload.message == "lotbot/group-1/12345678: 成功0件 失敗0件 スキップ1件 キャンセル2件"
        assert payload.summary == summary

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        manager = NotificationManager(NotificationsConfig(retry=fast_retry(3)))
        flaky = MagicMock(spec=NotificationProvider)
        flaky.name = "flaky"
        flaky.send = AsyncMock(side_effect=[False, False, True])
        manager.providers = [flaky]

        await manager.notify_summary(RunSummary())

        assert flaky.send.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self):
        manager = NotificationManager(NotificationsConfig(retry=fast_retry(2)))
        broken = MagicMock(spec=NotificationProvider)
        broken.name = "line"
        broken.send = AsyncMock(return_value=False)
        manager.providers = [broken]

        with pytest.raises(NotificationError, match="line"):
            await manager.notify_summary(RunSummary())

        assert broken.send.await_count == 2

    @pytest.mark.asyncio
    async def test_one_failing_provider_does_not_block_others(self):
        manager = NotificationManager(NotificationsConfig(retry=fast_retry(1)))

        success_provider = MagicMock(spec=NotificationProvider)
        success_provider.name = "console"
        success_provider.send = AsyncMock(return_value=True)

        error_provider = MagicMock(spec=NotificationProvider)
        error_provider.name = "webhook"
        error_provider.send = AsyncMock(side_effect=Exception("Error"))

        manager.providers = [success_provider, error_provider]

        with pytest.raises(NotificationError, match="webhook"):
            await manager.notify_summary(RunSummary())

        success_provider.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_closes_http_clients(self):
        config = NotificationsConfig(
            line=LineConfig(enabled=True, channel_token="token", to="U123"),
            webhook=WebhookConfig(enabled=True, url="https://hooks.example.com"),
        )
        manager = NotificationManager(config)
        clients = [p.client for p in manager.providers if hasattr(p, "client")]
        for client in clients:
            client.aclose = AsyncMock()

        await manager.aclose()

        assert len(clients) == 2
        for client in clients:
            client.aclose.assert_awaited_once()
