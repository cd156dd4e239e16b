"""
feeds.py — The two read sources the heatmap aggregates.

  signal_feed   DisasterSignal items (classified tweets)
  report_feed   CommunityReport items

Each FeedStore holds the latest list, bumps `version` whenever the list is
replaced or extended, and notifies subscribers so open heatmap sessions can
re-aggregate. The pipeline only reads them; contents arrive either from
refresh() (GET on the configured feed URL) or from the ingest routes.

Graceful degradation: a failed refresh keeps the previous contents and logs
a warning. Individual items that fail validation are skipped.

Accepted feed payloads:
    [ {...}, {...} ]                     bare list
    { "<feed name>": [ {...}, ... ] }    e.g. {"signals": [...]}
"""

import logging
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from riskmap.core.config import settings
from riskmap.models.heatmap import CommunityReport, DisasterSignal

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

FeedListener = Callable[[], None]


class FeedStore(Generic[T]):
    def __init__(
        self,
        name: str,
        model: type[T],
        url: str = "",
        timeout: float | None = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.name = name
        self.model = model
        self.url = url
        self.timeout = timeout if timeout is not None else settings.feed_timeout_seconds
        self._client = client
        self._items: list[T] = []
        self._version = 0
        self._listeners: list[FeedListener] = []

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._items)

    def replace(self, items: Iterable[T]) -> None:
        self._items = list(items)
        self._changed()

    def extend(self, items: Iterable[T]) -> int:
        new_items = list(items)
        self._items = self._items + new_items
        self._changed()
        return len(new_items)

    def clear(self) -> None:
        self.replace([])

    def subscribe(self, listener: FeedListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> bool:
        """
        Re-fetch the feed from `url`.

        Returns True when the contents were replaced, False when refresh is
        disabled or failed (contents unchanged).
        """
        if not self.url:
            return False

        try:
            if self._client is not None:
                response = await self._client.get(self.url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s feed returned HTTP %s", self.name, exc.response.status_code)
            return False
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("%s feed refresh failed: %s", self.name, exc)
            return False

        raw_items = self._extract_items(payload)
        if raw_items is None:
            logger.warning("%s feed payload has unexpected shape", self.name)
            return False

        self.replace(self._validate(raw_items))
        logger.info("%s feed refreshed: %d items", self.name, len(self._items))
        return True

    def _extract_items(self, payload: Any) -> Optional[list]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get(self.name), list):
            return payload[self.name]
        return None

    def _validate(self, raw_items: list) -> list[T]:
        valid = []
        skipped = 0
        for raw in raw_items:
            try:
                valid.append(self.model.model_validate(raw))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.warning("Skipped %d invalid %s item(s)", skipped, self.name)
        return valid

    def _changed(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("%s feed listener failed", self.name)


# Module-level singletons shared by the bootstrap, sessions and routes
signal_feed: FeedStore[DisasterSignal] = FeedStore(
    "signals", DisasterSignal, url=settings.signal_feed_url
)
report_feed: FeedStore[CommunityReport] = FeedStore(
    "reports", CommunityReport, url=settings.report_feed_url
)
