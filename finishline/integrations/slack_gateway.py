"""
Slack Web API gateway.

All outbound HTTP calls to Slack go through this class. Services never call
`requests` directly; they go through ChangeRequestNotifier, which owns a
gateway instance.

Calls used:
  - chat.postMessage  — channel message or DM, optionally as a thread reply
  - reactions.add     — emoji reaction on an existing message

Every call:
  - is a no-op returning None when no bot token is configured
  - raises ExternalNotificationError on HTTP failure or Slack ``ok: false``

Testability: pass a mock `session` to SlackGateway() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import time

import requests

from finishline.core.exceptions import ExternalNotificationError

logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api"

_DEFAULT_TIMEOUT = 10


def build_text_block(message: str, link: str | None = None, link_button_text: str | None = None) -> dict:
    """Build a Block Kit section with an optional link button accessory."""
    block = {
        "type": "section",
        "text": {"type": "mrkdwn", "text": message},
    }
    if link and link_button_text:
        block["accessory"] = {
            "type": "button",
            "text": {"type": "plain_text", "emoji": True, "text": link_button_text},
            "url": link,
        }
    return block


class SlackGateway:
    """Thin Slack Web API client.

    Usage:
        gateway = SlackGateway(token=app.config["SLACK_BOT_TOKEN"])
        posted = gateway.send_message("C123", "Hello", "https://…/cr/4", "View CR #4")
        # posted == {"channel_id": "C123", "ts": "1712345678.000100"}
    """

    def __init__(
        self,
        token: str | None,
        session: requests.Session | None = None,
        base_url: str = SLACK_API_BASE,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: requests.Session | None = session

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Low-level call ────────────────────────────────────────────────────────

    def _call(self, method: str, payload: dict, action: str) -> dict:
        """POST ``payload`` to ``<base_url>/<method>`` and return the Slack body.

        Raises:
            ExternalNotificationError: network error, non-2xx, or ``ok: false``.
        """
        url = f"{self.base_url}/{method}"
        t0 = time.perf_counter()
        try:
            resp = self.session.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Slack %s failed: %s", method, exc)
            raise ExternalNotificationError(f"Error {action}, reason: {exc}") from exc

        duration_ms = (time.perf_counter() - t0) * 1000
        if not body.get("ok"):
            reason = body.get("error", "unknown_error")
            logger.warning("Slack %s returned error=%s (%.0fms)", method, reason, duration_ms)
            raise ExternalNotificationError(f"Error {action}, reason: {reason}")

        logger.debug("Slack %s ok channel=%s (%.0fms)", method, payload.get("channel"), duration_ms)
        return body

    # ── Public API ───────────────────────────────────────────────────────────

    def send_message(
        self,
        slack_id: str,
        message: str,
        link: str | None = None,
        link_button_text: str | None = None,
    ) -> dict | None:
        """Send a message to a channel id, or DM a member id.

        Returns:
            ``{"channel_id", "ts"}`` of the posted message, or None when no
            bot token is configured.
        """
        if not self.token:
            return None
        body = self._call(
            "chat.postMessage",
            {
                "channel": slack_id,
                "text": message,
                "blocks": [build_text_block(message, link, link_button_text)],
                "unfurl_links": False,
            },
            "sending slack message",
        )
        return {"channel_id": body.get("channel", slack_id), "ts": body.get("ts")}

    def reply_to_message_in_thread(
        self,
        slack_id: str,
        parent_ts: str,
        message: str,
        link: str | None = None,
        link_button_text: str | None = None,
    ) -> dict | None:
        """Reply in the thread of the message identified by ``parent_ts``."""
        if not self.token:
            return None
        body = self._call(
            "chat.postMessage",
            {
                "channel": slack_id,
                "thread_ts": parent_ts,
                "text": message,
                "blocks": [build_text_block(message, link, link_button_text)],
                "unfurl_links": False,
            },
            "sending slack reply to thread",
        )
        return {"channel_id": body.get("channel", slack_id), "ts": body.get("ts")}

    def react_to_message(self, slack_id: str, parent_ts: str, emoji: str) -> None:
        """Add an emoji reaction (name without colons) to a message."""
        if not self.token:
            return None
        self._call(
            "reactions.add",
            {"channel": slack_id, "timestamp": parent_ts, "name": emoji},
            "reacting to slack message",
        )
        return None
