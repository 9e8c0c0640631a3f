"""Pass-through client for the exam topic catalog used by the topic picker."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

import httpx
from pydantic import TypeAdapter, ValidationError

from .config import Settings, get_settings
from .errors import CatalogUnavailable
from .schedule_models import SubjectWithTopics

logger = logging.getLogger(__name__)

_CATALOG_ADAPTER = TypeAdapter(List[SubjectWithTopics])


class TopicCatalog(Protocol):
    def subjects_with_topics(self, exam_id: int) -> List[SubjectWithTopics]:  # pragma: no cover - protocol definition
        ...


class HttpTopicCatalog:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "HttpTopicCatalog":
        settings = settings or get_settings()
        if not settings.topic_catalog_url:
            raise CatalogUnavailable("SCHEDULER_TOPIC_CATALOG_URL is not configured.")
        timeout_seconds = max(settings.topic_catalog_timeout_ms, 100) / 1000
        return cls(settings.topic_catalog_url, timeout_seconds=timeout_seconds)

    def subjects_with_topics(self, exam_id: int) -> List[SubjectWithTopics]:
        endpoint = f"{self._base_url}/exams/{exam_id}/topics"
        local_client = self._client or httpx.Client(timeout=self._timeout)
        close_client = self._client is None
        try:
            response = local_client.get(endpoint)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Topic catalog request failed for exam=%s: %s", exam_id, exc)
            raise CatalogUnavailable(f"Topic catalog call failed: {exc}") from exc
        finally:
            if close_client:
                local_client.close()

        try:
            return _CATALOG_ADAPTER.validate_python(response.json())
        except (ValueError, ValidationError) as exc:
            raise CatalogUnavailable(f"Topic catalog returned an invalid payload: {exc}") from exc


__all__ = ["HttpTopicCatalog", "TopicCatalog"]
