"""
Remote file access through the Telegram Bot API, which the platform uses as
file storage for question files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import requests

from examprep.cache import TtlLruCache, UrlCache
from examprep.errors import RemoteFileError

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
REQUEST_TIMEOUT = 30  # seconds


class FileFetcher(Protocol):
    """Resolves an opaque file id to a URL or its contents."""

    def get_file_url(self, file_id: str) -> str:
        ...

    def get_file_bytes(self, file_id: str) -> bytes:
        ...

    def get_file_text(self, file_id: str) -> str:
        ...


@dataclass
class InMemoryFileFetcher:
    """Test double serving files from a dict."""

    files: dict = field(default_factory=dict)
    base_url: str = "https://example.test/files"

    def get_file_url(self, file_id: str) -> str:
        if file_id not in self.files:
            raise RemoteFileError(f"Unknown file id: {file_id}")
        return f"{self.base_url}/{file_id}"

    def get_file_bytes(self, file_id: str) -> bytes:
        self.get_file_url(file_id)
        content = self.files[file_id]
        return content.encode("utf-8") if isinstance(content, str) else content

    def get_file_text(self, file_id: str) -> str:
        return self.get_file_bytes(file_id).decode("utf-8")


class TelegramFileClient:
    """
    Downloads files the bot can see. Resolved download URLs are cached
    because every `getFile` call costs a Bot API round trip.
    """

    def __init__(
        self,
        bot_token: str,
        cache: UrlCache | None = None,
        session: requests.Session | None = None,
    ):
        if not bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN is required for TelegramFileClient")
        self.bot_token = bot_token
        self.cache = cache if cache is not None else TtlLruCache()
        self.session = session or requests.Session()

    @property
    def _api_url(self) -> str:
        return f"{TELEGRAM_API_BASE}/bot{self.bot_token}"

    def get_file_url(self, file_id: str) -> str:
        """
        Resolves a Telegram file id to its download URL.

        Args:
            file_id (str): The Telegram file id.

        Returns:
            str: The download URL.

        Raises:
            RemoteFileError: If the Bot API call fails or rejects the id.
        """
        cached = self.cache.get(file_id)
        if cached:
            return cached

        try:
            response = self.session.get(
                f"{self._api_url}/getFile",
                params={"file_id": file_id},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("getFile failed for %s: %s", file_id, e)
            raise RemoteFileError("Failed to fetch file from Telegram") from e

        if not payload.get("ok") or not payload.get("result", {}).get("file_path"):
            logger.warning(
                "getFile rejected %s: %s", file_id, payload.get("description")
            )
            raise RemoteFileError("Failed to fetch file from Telegram")

        file_path = payload["result"]["file_path"]
        url = f"{TELEGRAM_API_BASE}/file/bot{self.bot_token}/{file_path}"
        self.cache.set(file_id, url)
        return url

    def get_file_bytes(self, file_id: str) -> bytes:
        url = self.get_file_url(file_id)
        try:
            response = self.session.get(url, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error("Download failed for %s: %s", file_id, e)
            raise RemoteFileError("Failed to download file from Telegram") from e
        return response.content

    def get_file_text(self, file_id: str) -> str:
        return self.get_file_bytes(file_id).decode("utf-8", errors="replace")
