"""Confluence REST client with upsert-by-title publishing."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from . import config
from .errors import PublishError
from .models import ConfluenceSettings, PageRef

logger = logging.getLogger(__name__)

CONTENT_PATH = "/rest/api/content"


class ConfluenceClient:
    """Create or update wiki pages in a single Confluence space."""

    def __init__(
        self,
        settings: ConfluenceSettings,
        session: Optional[requests.Session] = None,
        timeout: int = config.HTTP_TIMEOUT,
    ) -> None:
        if not settings.is_complete:
            raise PublishError(
                "Confluence settings incomplete: base URL, token and space key are required"
            )
        self.settings = settings
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {settings.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}{path}"

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.RequestException as exc:
            logger.error("Confluence %s failed: %s", action, exc)
            raise PublishError(f"Failed to {action} in Confluence: {exc}") from exc
        except ValueError as exc:
            raise PublishError(f"Confluence returned invalid JSON while trying to {action}") from exc

    def _page_payload(self, title: str, body: str, labels: List[str]) -> Dict[str, Any]:
        return {
            "type": "page",
            "title": title,
            "body": {"storage": {"value": body, "representation": "storage"}},
            "metadata": {"labels": [{"name": label} for label in labels]},
        }

    def find_page(self, title: str) -> Optional[PageRef]:
        data = self._request(
            "GET",
            CONTENT_PATH,
            "search for the documentation page",
            params={"title": title, "spaceKey": self.settings.space_key, "expand": "version"},
        )
        results = data.get("results") or []
        if not results:
            return None
        page = results[0]
        try:
            return PageRef(page_id=str(page["id"]), version=int(page["version"]["number"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise PublishError(f"Unexpected page payload for '{title}'") from exc

    def create_page(self, title: str, body: str, labels: List[str]) -> str:
        payload = self._page_payload(title, body, labels)
        payload["space"] = {"key": self.settings.space_key}
        if self.settings.parent_page_id:
            payload["ancestors"] = [{"id": self.settings.parent_page_id}]

        data = self._request("POST", CONTENT_PATH, "create the documentation page", json=payload)
        if "id" not in data:
            raise PublishError("Confluence did not return an id for the created page")
        logger.info("Created Confluence page '%s' (%s)", title, data["id"])
        return str(data["id"])

    def update_page(self, page: PageRef, title: str, body: str, labels: List[str]) -> None:
        payload = self._page_payload(title, body, labels)
        payload["version"] = {"number": page.version + 1}
        self._request(
            "PUT", f"{CONTENT_PATH}/{page.page_id}", "update the documentation page", json=payload,
        )
        logger.info("Updated Confluence page '%s' to version %d", title, page.version + 1)

    def publish(self, title: str, body: str, labels: List[str]) -> str:
        """Update the page titled *title* in place, or create it; returns the page id."""
        existing = self.find_page(title)
        if existing is not None:
            self.update_page(existing, title, body, labels)
            return existing.page_id
        return self.create_page(title, body, labels)
