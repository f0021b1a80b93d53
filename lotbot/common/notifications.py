"""
Notification services for the lottery bot
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
import httpx

from .config import NotificationsConfig
from .errors import NotificationError
from .models import NotificationPayload, RunSummary
from .scheduler import RetryStrategy

logger = logging.getLogger(__name__)

LINE_PUSH_URL = "https://api.line.me/v2/bot/message/push"


class NotificationProvider(ABC):
    """Base class for notification providers"""

    name = "provider"

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """Send notification, return True if successful"""
        pass

    async def aclose(self):
        """Release any connections held by the provider"""


class LineNotifier(NotificationProvider):
    """LINE Messaging API push messages"""

    name = "line"

    def __init__(self, channel_token: str, to: str):
        self.channel_token = channel_token
        self.to = to
        self.client = httpx.AsyncClient(timeout=10.0)

    async def send(self, payload: NotificationPayload) -> bool:
        try:
            response = await self.client.post(
                LINE_PUSH_URL,
                headers={
                    "Authorization": f"Bearer {self.channel_token}",
                    "Content-Type": "application/json"
                },
                json={
                    "to": self.to,
                    "messages": [{"type": "text", "text": self._format_text(payload)}]
                }
            )
            success = response.status_code == 200
            if not success:
                logger.error(f"LINE push failed: {response.status_code} - {response.text}")
            return success
        except httpx.HTTPError as e:
            logger.error(f"LINE push error: {e}")
            return False

    def _format_text(self, payload: NotificationPayload) -> str:
        # LINE text messages are capped at 5000 characters
        return payload.message[:5000]

    async def aclose(self):
        await self.client.aclose()


class WebhookNotifier(NotificationProvider):
    """Generic webhook notifications (Slack, Discord, etc.)"""

    name = "webhook"

    def __init__(self, webhook_url: str):
        self.webhook_url = webhook_url
        self.client = httpx.AsyncClient(timeout=10.0)

    async def send(self, payload: NotificationPayload) -> bool:
        try:
            # Format for Slack-compatible webhooks
            response = await self.client.post(
                self.webhook_url,
                json={
                    "text": f"{payload.title}: {payload.message}",
                    "blocks": [
                        {
                            "type": "header",
                            "text": {"type": "plain_text", "text": payload.title}
                        },
                        {
                            "type": "section",
                            "text": {"type": "mrkdwn", "text": payload.message}
                        },
                    ]
                }
            )
            return 200 <= response.status_code < 300
        except httpx.HTTPError as e:
            logger.error(f"Webhook send error: {e}")
            return False

    async def aclose(self):
        await self.client.aclose()


class ConsoleNotifier(NotificationProvider):
    """Console output"""

    name = "console"

    async def send(self, payload: NotificationPayload) -> bool:
        print("\n" + "=" * 60)
        print(f"📢 {payload.title}")
        print("-" * 60)
        print(payload.message)
        print("=" * 60 + "\n")
        return True


class NotificationManager:
    """Manages multiple notification providers"""

    def __init__(self, config: NotificationsConfig):
        self.config = config
        self.providers: List[NotificationProvider] = []

        # Always add console notifier
        self.providers.append(ConsoleNotifier())

        if config.line.enabled and config.line.channel_token and config.line.to:
            self.providers.append(LineNotifier(
                channel_token=config.line.channel_token,
                to=config.line.to
            ))
            logger.info("LINE notifications enabled")
        elif config.line.enabled:
            logger.warning("LINE notifications enabled but missing channel token or recipient")

        if config.webhook.enabled and config.webhook.url:
            self.providers.append(WebhookNotifier(config.webhook.url))
            logger.info("Webhook notifications enabled")
        elif config.webhook.enabled:
            logger.warning("Webhook notifications enabled but missing URL")

    async def aclose(self):
        for provider in self.providers:
            await provider.aclose()

    def _retry_strategy(self) -> RetryStrategy:
        return RetryStrategy(
            max_attempts=self.config.retry.max_attempts,
            delay_seconds=self.config.retry.delay_seconds,
        )

    async def notify_summary(self, summary: RunSummary, account: Optional[str] = None):
        """
        Send the one-line run summary.

        Raises:
            NotificationError: if any provider still fails after all retries
        """
        prefix = "/".join(part for part in (self.config.label, account) if part)
        line = summary.summary_line()
        payload = NotificationPayload(
            title="抽選申込結果",
            message=f"{prefix}: {line}" if prefix else line,
            urgency="high" if summary.failed_count else "normal",
            summary=summary,
        )
        await self._send_all(payload)

    async def _send_with_retry(self, provider: NotificationProvider, payload: NotificationPayload) -> bool:
        strategy = self._retry_strategy()
        while strategy.should_retry():
            strategy.record_attempt()
            if await provider.send(payload):
                return True
            logger.warning(
                f"{provider.name} notification failed "
                f"(attempt {strategy.attempts}/{strategy.max_attempts})"
            )
            if strategy.should_retry():
                await strategy.wait()
        return False

    async def _send_all(self, payload: NotificationPayload):
        """Send notification through all providers"""
        results = await asyncio.gather(
            *[self._send_with_retry(p, payload) for p in self.providers],
            return_exceptions=True
        )

        failed = [
            provider.name
            for provider, result in zip(self.providers, results)
            if result is not True
        ]
        logger.info(f"Notifications sent: {len(self.providers) - len(failed)}/{len(self.providers)} successful")
        if failed:
            raise NotificationError(f"Notification delivery failed for: {', '.join(failed)}")
