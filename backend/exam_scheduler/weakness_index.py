"""Client for the external topic weakness index."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from .config import Settings, get_settings
from .errors import FieldViolation, ScheduleValidationError, WeaknessIndexUnavailable
from .schedule_models import RankedTopic

logger = logging.getLogger(__name__)

_RANKING_ADAPTER = TypeAdapter(List[RankedTopic])


class WeaknessIndex(Protocol):
    """Anything able to rank a user's topics from weakest to strongest."""

    def rank_topics(self, user_id: str, exam_id: int, topic_ids: Sequence[int]) -> List[RankedTopic]:  # pragma: no cover - protocol definition
        ...


def normalize_ranking(ranking: Sequence[RankedTopic], topic_ids: Sequence[int]) -> List[RankedTopic]:
    """Restrict ``ranking`` to the requested topics and make its order total.

    Topics are ordered by weakness score (highest first); ties keep the order
    the index returned them in and fall back to the topic id. Requested topics
    the index did not rank are rejected so the caller never gets a silently
    reordered week.
    """
    requested = list(dict.fromkeys(topic_ids))
    wanted = set(requested)
    seen: Dict[int, int] = {}
    picked: List[RankedTopic] = []
    for position, entry in enumerate(ranking):
        if entry.topic_id not in wanted or entry.topic_id in seen:
            continue
        seen[entry.topic_id] = position
        picked.append(entry)

    missing = [topic_id for topic_id in requested if topic_id not in seen]
    if missing:
        raise ScheduleValidationError(
            [FieldViolation("topicIds", f"Unknown topic ids for this exam: {missing}")],
            message="Some selected topics are not part of this exam.",
        )

    return sorted(picked, key=lambda entry: (-entry.weakness_score, seen[entry.topic_id], entry.topic_id))


class HttpWeaknessIndex:
    """Calls the analytics service's ranking endpoint with a bounded timeout."""

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
    def from_settings(cls, settings: Optional[Settings] = None) -> "HttpWeaknessIndex":
        settings = settings or get_settings()
        if not settings.weakness_index_url:
            raise WeaknessIndexUnavailable("SCHEDULER_WEAKNESS_INDEX_URL is not configured.")
        timeout_seconds = max(settings.weakness_index_timeout_ms, 100) / 1000
        return cls(settings.weakness_index_url, timeout_seconds=timeout_seconds)

    def rank_topics(self, user_id: str, exam_id: int, topic_ids: Sequence[int]) -> List[RankedTopic]:
        endpoint = f"{self._base_url}/rank"
        payload = {"userId": user_id, "examId": exam_id, "topicIds": list(topic_ids)}
        local_client = self._client or httpx.Client(timeout=self._timeout)
        close_client = self._client is None
        try:
            response = local_client.post(endpoint, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Weakness index timed out for user=%s exam=%s", user_id, exam_id)
            raise WeaknessIndexUnavailable("The weakness index did not answer in time; retry shortly.") from exc
        except httpx.HTTPError as exc:
            raise WeaknessIndexUnavailable(f"Weakness index call failed: {exc}") from exc
        finally:
            if close_client:
                local_client.close()

        try:
            data = response.json()
            if isinstance(data, dict):
                data = data.get("topics", [])
            return _RANKING_ADAPTER.validate_python(data)
        except (ValueError, ValidationError) as exc:
            raise WeaknessIndexUnavailable(f"Weakness index returned an invalid payload: {exc}") from exc


class StaticWeaknessIndex:
    """In-process index backed by fixed scores, for local development and tests."""

    def __init__(self, topics: Mapping[int, RankedTopic]) -> None:
        self._topics = dict(topics)

    @classmethod
    def from_entries(cls, entries: Sequence[RankedTopic]) -> "StaticWeaknessIndex":
        return cls({entry.topic_id: entry for entry in entries})

    def rank_topics(self, user_id: str, exam_id: int, topic_ids: Sequence[int]) -> List[RankedTopic]:
        ranked = [self._topics[topic_id] for topic_id in topic_ids if topic_id in self._topics]
        return sorted(ranked, key=lambda entry: -entry.weakness_score)


__all__ = [
    "HttpWeaknessIndex",
    "StaticWeaknessIndex",
    "WeaknessIndex",
    "normalize_ranking",
]
