"""Discord REST API client (bot token auth)."""

import logging
from typing import Any, Optional

import httpx

from ..config import DISCORD_CONTENT_LIMIT, DISCORD_THREAD_NAME_LIMIT
from ..exceptions import DeliveryError, ThreadCreationError
from ..text import truncate

logger = logging.getLogger(__name__)

ERROR_DETAIL_CHARS = 300


def message_payload(content: str, mention_user_id: Optional[str] = None) -> dict:
    """Message body; allowed_mentions never lets anyone but mention_user_id be pinged."""
    return {
        "content": truncate(content, DISCORD_CONTENT_LIMIT),
        "allowed_mentions": {
            "parse": [],
            "users": [mention_user_id] if mention_user_id else [],
        },
    }


class DiscordClient:
    """Minimal Discord API client.

    Each call opens its own httpx.Client with the configured timeout. Any
    failure (network, timeout, non-2xx) is raised as DeliveryError; nothing
    is retried here.
    """

    BASE_URL = "https://discord.com/api/v10"

    def __init__(
        self,
        token: str,
        timeout_ms: float = 10000,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.timeout = timeout_ms / 1000
        self.transport = transport

    def request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        """
        Execute one API call.

        Args:
            method: HTTP method
            path: API path, e.g. "/channels/123/messages"
            body: JSON body

        Returns:
            Decoded JSON response, or None for 204 No Content

        Raises:
            DeliveryError: On API or network errors
        """
        headers = {
            "Authorization": f"Bot {self.token}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(
                    method,
                    f"{self.BASE_URL}{path}",
                    headers=headers,
                    json=body,
                )
                response.raise_for_status()
                if response.status_code == 204 or not response.content:
                    return None
                return response.json()

        except httpx.TimeoutException:
            raise DeliveryError(method, path, detail=f"timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            detail = truncate(e.response.text, ERROR_DETAIL_CHARS)
            raise DeliveryError(method, path, status=e.response.status_code, detail=detail)
        except httpx.RequestError as e:
            raise DeliveryError(method, path, detail=f"network error: {e}")
        except ValueError as e:
            raise DeliveryError(method, path, detail=f"invalid JSON response: {e}")

    def post_message(self, channel_id: str, content: str, mention_user_id: Optional[str] = None) -> dict:
        return self.request(
            "POST",
            f"/channels/{channel_id}/messages",
            message_payload(content, mention_user_id),
        ) or {}

    def edit_message(self, channel_id: str, message_id: str, content: str) -> None:
        self.request(
            "PATCH",
            f"/channels/{channel_id}/messages/{message_id}",
            message_payload(content),
        )

    def create_dm_channel(self, user_id: str) -> str:
        path = "/users/@me/channels"
        channel = self.request("POST", path, {"recipient_id": user_id})
        if not isinstance(channel, dict) or not isinstance(channel.get("id"), str):
            raise DeliveryError("POST", path, detail=f"no DM channel returned for user {user_id}")
        return channel["id"]

    def create_thread_from_message(
        self,
        channel_id: str,
        name: str,
        starter_text: str,
        auto_archive_minutes: int,
    ) -> str:
        """Post a starter message in a text channel and open a thread on it."""
        starter = self.post_message(channel_id, starter_text)
        if not isinstance(starter.get("id"), str):
            raise ThreadCreationError(
                "POST", f"/channels/{channel_id}/messages", detail="starter message has no id"
            )

        path = f"/channels/{channel_id}/messages/{starter['id']}/threads"
        thread = self.request("POST", path, {
            "name": truncate(name, DISCORD_THREAD_NAME_LIMIT),
            "auto_archive_duration": auto_archive_minutes,
        })
        return self._thread_id(thread, path)

    def create_forum_thread(
        self,
        channel_id: str,
        name: str,
        starter_text: str,
        auto_archive_minutes: int,
    ) -> str:
        """Forum/media channels: the thread and its first post are created together."""
        path = f"/channels/{channel_id}/threads"
        thread = self.request("POST", path, {
            "name": truncate(name, DISCORD_THREAD_NAME_LIMIT),
            "auto_archive_duration": auto_archive_minutes,
            "message": message_payload(starter_text),
        })
        return self._thread_id(thread, path)

    @staticmethod
    def _thread_id(thread: Any, path: str) -> str:
        if not isinstance(thread, dict) or not isinstance(thread.get("id"), str):
            raise ThreadCreationError("POST", path, detail="no thread id in response")
        return thread["id"]
