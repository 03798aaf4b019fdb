"""Lark/Feishu webhook notifier for review notes."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import logging
import re
import time
from datetime import datetime
from typing import Any

import httpx

from .config import WebhookConfig
from .exceptions import WebhookError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
MAX_NOTE_LENGTH = 10000
RETRYABLE_STATUS = frozenset({408, 429})
# Lark API codes: system busy, rate limited.
RETRYABLE_CODES = frozenset({50001, 50002})

_CODE_BLOCK_RE = re.compile(r"```(\w+)?\n([\s\S]*?)```")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def generate_sign(timestamp: int, secret: str) -> str:
    """Lark signature: HMAC-SHA256 keyed with ``"{timestamp}\\n{secret}"`` over an empty body."""
    key = f"{timestamp}\n{secret}".encode()
    digest = hmac.new(key, b"", hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def format_note_content(content: str) -> str:
    if len(content) > MAX_NOTE_LENGTH:
        content = content[:MAX_NOTE_LENGTH] + "..."
    content = _CODE_BLOCK_RE.sub(r"`\2`", content)
    return _BLANK_LINES_RE.sub("\n\n", content)


def _md_block(content: str) -> dict[str, Any]:
    return {"tag": "div", "text": {"content": content, "tag": "lark_md"}}


def _should_retry_status(status_code: int) -> bool:
    if 500 <= status_code < 600:
        return True
    return status_code in RETRYABLE_STATUS


class WebhookNotifier:
    """Posts text and interactive cards to a Lark custom-bot webhook."""

    def __init__(
        self,
        config: WebhookConfig | None = None,
        *,
        max_retries: int = MAX_RETRIES,
        base_delay: float = 1.0,
    ) -> None:
        self.config = config or WebhookConfig.from_env()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._client = httpx.AsyncClient(timeout=self.config.timeout)
        logger.info(
            "Webhook notifier initialized (configured=%s, mode=%s)",
            self.is_configured,
            self.config.notification_mode,
        )

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    async def send_text(self, text: str) -> None:
        if not self.is_configured:
            logger.debug("Webhook notification skipped, not configured")
            return
        await self._post({"msg_type": "text", "content": {"text": text}})

    async def send_card(self, card: dict[str, Any]) -> None:
        if not self.is_configured:
            logger.debug("Webhook notification skipped, not configured")
            return
        await self._post({"msg_type": "interactive", "card": card})

    def build_mr_note_card(
        self,
        project_name: str,
        mr_title: str,
        mr_url: str,
        note: str,
        author: str | None = None,
        mr_iid: int | None = None,
    ) -> dict[str, Any]:
        sent_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return {
            "config": {"wide_screen_mode": True},
            "header": {
                "title": {"content": "🔔 New GitLab MR comment", "tag": "plain_text"},
                "template": "blue",
            },
            "elements": [
                _md_block(f"**Project**: {project_name}"),
                _md_block(f"**MR**: #{mr_iid} {mr_title}"),
                {"tag": "hr"},
                _md_block(f"**Comment**:\n{format_note_content(note)}"),
                {"tag": "hr"},
                {
                    "tag": "note",
                    "elements": [
                        {
                            "tag": "plain_text",
                            "content": f"Author: {author or 'System'} | Time: {sent_at}",
                        }
                    ],
                },
                {
                    "tag": "action",
                    "actions": [
                        {
                            "tag": "button",
                            "text": {"content": "View MR", "tag": "plain_text"},
                            "url": mr_url,
                            "type": "primary",
                        }
                    ],
                },
            ],
        }

    async def _post(self, payload: dict[str, Any]) -> None:
        """POST *payload*, retrying transient failures with exponential backoff.

        Non-retryable HTTP statuses and API codes raise :class:`WebhookError`.
        Transport errors that outlast every retry are logged and dropped.
        """
        for attempt in range(self.max_retries + 1):
            body = dict(payload)
            if self.config.secret:
                timestamp = int(time.time())
                body["timestamp"] = str(timestamp)
                body["sign"] = generate_sign(timestamp, self.config.secret)

            delay = self.base_delay * 2**attempt
            last_attempt = attempt >= self.max_retries
            try:
                resp = await self._client.post(self.config.url, json=body)
            except httpx.HTTPError as e:
                if last_attempt:
                    logger.error(
                        "Failed to send webhook notification after %d attempts: %s",
                        attempt + 1,
                        e,
                    )
                    return
                logger.warning(
                    "Webhook request failed (attempt %d), retrying in %.1fs: %s",
                    attempt + 1,
                    delay,
                    e,
                )
                await asyncio.sleep(delay)
                continue

            logger.info("Webhook response %s (attempt %d)", resp.status_code, attempt + 1)
            if not resp.is_success:
                if last_attempt or not _should_retry_status(resp.status_code):
                    logger.error("Webhook error %s: %s", resp.status_code, resp.text)
                    msg = f"Lark API error: {resp.status_code} - {resp.text}"
                    raise WebhookError(msg, status_code=resp.status_code)
                logger.warning(
                    "Webhook error %s (attempt %d), retrying in %.1fs",
                    resp.status_code,
                    attempt + 1,
                    delay,
                )
                await asyncio.sleep(delay)
                continue

            try:
                result = resp.json()
            except ValueError:
                result = {}
            if not isinstance(result, dict):
                result = {}
            code = result.get("code", 0)
            if code != 0:
                if last_attempt or code not in RETRYABLE_CODES:
                    logger.error("Webhook API error code=%s msg=%s", code, result.get("msg"))
                    msg = f"Lark API error: {result.get('msg') or 'Unknown error'}"
                    raise WebhookError(msg, status_code=resp.status_code, code=code)
                logger.warning(
                    "Webhook API code %s (attempt %d), retrying in %.1fs",
                    code,
                    attempt + 1,
                    delay,
                )
                await asyncio.sleep(delay)
                continue

            logger.info("Webhook notification sent (attempt %d)", attempt + 1)
            return
