"""
Routes intercepted requests to the strategy for their category.
"""

import logging
from collections.abc import Mapping

from offline_shell.core import responses
from offline_shell.core.classifier import classify
from offline_shell.core.strategies import Strategy, StrategyResult
from offline_shell.models.http import CapturedResponse, Category, RequestRecord
from offline_shell.models.stats import SOURCE_SYNTHESIZED

log = logging.getLogger(__name__)

_LAST_RESORT = {
    Category.STATIC_ASSET: responses.asset_unavailable,
    Category.API_DATA: responses.data_unavailable,
    Category.DEFAULT: responses.content_unavailable,
}


class Dispatcher:
    """The single entry point from the host into the strategies."""

    def __init__(self, strategies: Mapping[Category, Strategy]):
        missing = set(Category) - set(strategies)
        if missing:
            raise ValueError(
                f"No strategy configured for: {', '.join(c.value for c in missing)}"
            )
        self.strategies = dict(strategies)

    async def dispatch(
        self, record: RequestRecord
    ) -> tuple[Category, StrategyResult] | None:
        """
        Classifies and serves `record`. Returns None for non-HTTP requests, which
        are left to the host's default network path.
        """
        if not record.is_http:
            log.debug(f"Not intercepting non-HTTP request: {record.scheme}:")
            return None

        category = classify(record)
        strategy = self.strategies[category]
        try:
            result = await strategy.respond(record)
        except Exception as e:
            log.error(
                f"[red]{strategy.name} failed unexpectedly for {record.url}: {e}[/red]",
                exc_info=True,
            )
            result = StrategyResult(_LAST_RESORT[category](), SOURCE_SYNTHESIZED)
        return category, result

    async def handle(self, record: RequestRecord) -> CapturedResponse | None:
        """Returns the response for `record`, or None if it is not intercepted."""
        dispatched = await self.dispatch(record)
        if dispatched is None:
            return None
        return dispatched[1].response
