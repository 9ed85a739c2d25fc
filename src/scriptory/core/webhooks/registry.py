"""Outgoing webhooks fired on document events."""

import threading
import uuid
from typing import Any
from urllib.parse import urlparse

import requests
from loguru import logger

from scriptory import clock
from scriptory.config import WEBHOOK_TIMEOUT, WEBHOOKS_FILENAME
from scriptory.errors import InvalidInputError
from scriptory.protocols import HttpPoster
from scriptory.storage import FileStore

ALL_EVENTS = "*"


class WebhookRegistry:
    """Registered webhooks, kept in ``.webhooks.json``.

    Delivery is fire-and-forget: every failure is logged and skipped so a
    broken receiver never fails the operation that triggered it.
    """

    def __init__(
        self,
        files: FileStore,
        *,
        http: HttpPoster | None = None,
        filename: str = WEBHOOKS_FILENAME,
        timeout: float = WEBHOOK_TIMEOUT,
    ) -> None:
        self._files = files
        self._filename = filename
        self._http: HttpPoster = http if http is not None else requests.Session()
        self.timeout = timeout
        self._lock = threading.RLock()
        self._webhooks: list[dict[str, Any]] = []
        self.reload()

    def reload(self) -> None:
        data = self._files.try_read_json(self._filename)
        hooks = data.get("webhooks") if isinstance(data, dict) else None
        with self._lock:
            if isinstance(hooks, list):
                self._webhooks = [h for h in hooks if isinstance(h, dict)]
            else:
                self._webhooks = []

    def flush(self) -> None:
        with self._lock:
            self._files.write_json(self._filename, {"webhooks": self._webhooks})

    def register_webhook(self, url: str, events: list[str] | None = None) -> dict[str, Any]:
        """Register a URL for the given events ("*" or none means all).

        Raises:
            InvalidInputError: If url is not http(s).
        """
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            msg = f"Webhook URL must be http(s): {url!r}"
            raise InvalidInputError(msg)
        hook = {
            "id": f"hook-{uuid.uuid4().hex[:12]}",
            "url": url,
            "events": list(events) if events else [ALL_EVENTS],
            "createdAt": clock.now_iso(),
        }
        with self._lock:
            self._webhooks.append(hook)
            self.flush()
        logger.info("Registered webhook {} for {}", url, ", ".join(hook["events"]))
        return dict(hook)

    def get_webhooks(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(h) for h in self._webhooks]

    def trigger(self, event: str, data: Any) -> int:
        """POST ``{event, data, timestamp}`` to every subscribed webhook.

        Returns:
            Number of successful deliveries.
        """
        with self._lock:
            targets = [
                h
                for h in self._webhooks
                if event in h.get("events", []) or ALL_EVENTS in h.get("events", [])
            ]
        if not targets:
            return 0

        payload = {"event": event, "data": data, "timestamp": clock.now_iso()}
        delivered = 0
        for hook in targets:
            try:
                response = self._http.post(hook["url"], json=payload, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException:
                logger.opt(exception=True).warning("Webhook {} failed for {}", hook["url"], event)
                continue
            delivered += 1
        logger.debug("Delivered {} to {}/{} webhook(s)", event, delivered, len(targets))
        return delivered
