"""
Concurrent fan-out with partial-failure tolerance.

Two policies, as separate code paths:

- ``gather_entity``: one entity assembled from several facets. A failed
  facet degrades in place to an ``{"isFetched": False, "error": ...}``
  placeholder; the response is never aborted.
- ``enrich_items``: one enrichment per list item. An item whose
  enrichment raises is dropped from the list.

Both wait for every branch to settle and never cancel siblings.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def _identity(value: Any) -> Any:
    return value


def unavailable(reason: str) -> Dict[str, Any]:
    """Placeholder stored in place of a failed sub-fetch."""
    return {"isFetched": False, "error": reason}


@dataclass(frozen=True)
class SubFetch:
    """One branch of a fan-out: fetch, then shape into its field."""

    name: str
    fetch: Callable[[], Awaitable[Any]]
    shape: Callable[[Any], Any] = _identity
    error_message: str = "Can't fetch data"


@dataclass
class FanOutResult:
    payload: Dict[str, Any]
    failures: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


@dataclass
class EnrichmentResult:
    items: List[Any]
    dropped: int = 0


class FanOutAggregator:
    """Runs sub-fetches concurrently and merges their outcomes."""

    def __init__(self, metrics: Optional["MetricsCollector"] = None):
        self.metrics = metrics
        self.logger = get_logger("catalog.fan_out")

    @staticmethod
    async def _run(sub_fetch: SubFetch) -> Any:
        return sub_fetch.shape(await sub_fetch.fetch())

    async def gather_entity(self, primary: SubFetch, facets: Sequence[SubFetch]) -> FanOutResult:
        """Assemble one entity from its primary record and named facets."""
        sub_fetches = [primary, *facets]
        outcomes = await asyncio.gather(
            *(self._run(sub_fetch) for sub_fetch in sub_fetches),
            return_exceptions=True,
        )

        failures: List[str] = []
        resolved: List[Any] = []
        for sub_fetch, outcome in zip(sub_fetches, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                failures.append(sub_fetch.name)
                self._record_failure(sub_fetch, outcome)
                resolved.append(unavailable(sub_fetch.error_message))
            else:
                resolved.append(outcome)

        base = resolved[0]
        payload = dict(base) if isinstance(base, dict) else {"data": base}
        for sub_fetch, value in zip(facets, resolved[1:]):
            payload[sub_fetch.name] = value

        return FanOutResult(payload=payload, failures=failures)

    async def enrich_items(
        self,
        items: Sequence[Any],
        enrich: Callable[[Any], Awaitable[Any]],
        *,
        endpoint: str,
    ) -> EnrichmentResult:
        """Enrich every item concurrently, dropping items whose enrichment raises.

        Survivors keep their original relative order.
        """
        outcomes = await asyncio.gather(
            *(enrich(item) for item in items),
            return_exceptions=True,
        )

        enriched: List[Any] = []
        dropped = 0
        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                dropped += 1
                self.logger.warning(
                    "Dropping list item after enrichment failure",
                    endpoint=endpoint,
                    item_id=self._item_id(item),
                    error=str(outcome) or type(outcome).__name__,
                )
                if self.metrics:
                    self.metrics.increment_counter("enrichment_dropped_items_total", endpoint=endpoint)
                continue
            enriched.append(outcome)

        return EnrichmentResult(items=enriched, dropped=dropped)

    def _record_failure(self, sub_fetch: SubFetch, error: Exception) -> None:
        self.logger.warning(
            "Fan-out sub-fetch failed",
            facet=sub_fetch.name,
            error=str(error) or type(error).__name__,
        )
        if self.metrics:
            self.metrics.increment_counter("fan_out_failures_total", facet=sub_fetch.name)

    @staticmethod
    def _item_id(item: Any) -> Optional[Any]:
        if isinstance(item, dict):
            return item.get("id", item.get("mal_id"))
        return None
