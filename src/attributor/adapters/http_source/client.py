"""Generic cursor-paged JSON feed reader."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from attributor.adapters.http_resilience import ResilientClient, build_limiter
from attributor.domain.clock import utcnow
from attributor.domain.errors import AdapterFailure
from attributor.domain.model import Source

from .schema import FeedPage
from .translator import to_page

if TYPE_CHECKING:
    from collections.abc import Callable

    from aiolimiter import AsyncLimiter

    from attributor.config.http_resilience import ResilienceConfig
    from attributor.config.sources import SourceConfig
    from attributor.domain.clock import Clock
    from attributor.domain.ports import Page

log = getLogger(__name__)


def _default_client_factory(
    config: ResilienceConfig, limiter: AsyncLimiter | None
) -> ResilientClient:
    return ResilientClient(config, limiter=limiter)


@dataclass(slots=True)
class HttpSourceAdapter:
    """Reads ``GET <url>?cursor=<c>&limit=<n>`` pages of ``{records, next_cursor, total}``.

    Every page opens a fresh resilient client under its own event loop; the rate
    limiter is owned by the adapter so it throttles consecutive pages. Whatever still
    fails after retries surfaces as ``AdapterFailure``.
    """

    config: SourceConfig
    client_factory: Callable[[ResilienceConfig, AsyncLimiter | None], ResilientClient] = field(
        default=_default_client_factory
    )
    clock: Clock = field(default=utcnow)
    limiter: AsyncLimiter | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.limiter = build_limiter(self.config.resilience.ratelimit)

    @property
    def source(self) -> Source:
        return Source(self.config.name)

    def next_page(self, cursor: str | None) -> Page:
        try:
            return asyncio.run(self._fetch(cursor))
        except httpx.HTTPError as exc:
            log.error(f"{self.config.name} feed request failed: {exc}")  # noqa: TRY400
            raise AdapterFailure(
                f"{self.config.name} feed request failed: {exc}", source=self.source
            ) from exc
        except ValueError as exc:  # malformed JSON or pydantic ValidationError
            raise AdapterFailure(
                f"{self.config.name} feed returned an unexpected payload", source=self.source
            ) from exc

    async def _fetch(self, cursor: str | None) -> Page:
        params: dict[str, str | int] = {"limit": self.config.page_size}
        if cursor is not None:
            params["cursor"] = cursor
        headers = {"Accept": "application/json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"

        async with self.client_factory(self.config.resilience, self.limiter) as client:
            response = await client.get(
                self.config.url, params=httpx.QueryParams(params), headers=headers
            )
            response.raise_for_status()
            feed = FeedPage.model_validate(response.json())

        log.debug(
            f"Fetched {len(feed.records)} {self.config.name} records "
            f"(cursor={cursor!r}, next={feed.next_cursor!r})"
        )
        return to_page(feed, self.source, observed_at=self.clock())


if TYPE_CHECKING:
    from attributor.domain.ports import SourceAdapter

    def _adapter_check(config: SourceConfig) -> SourceAdapter:
        return HttpSourceAdapter(config)
