"""
Search aggregation across per-chain registry sources.

Sources only support exact-match, cursor-paginated queries. Name and term-list
filters need substring matching, so when any of them is present the first
page request scans up to ``max_pages`` pages per source and returns every
match at once, without a cursor. Everything else is a single pass-through
request per source that forwards the source's own cursor.

Cached results are never handed out directly: every caller gets a copy with
fresh list and dict references, since consumers detect changes by identity.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .cache import InflightRequests, LRUCache
from .cache_key import hash_key
from .chains import DEFAULT_CHAIN_ID
from .filters import matches_all_filters, requires_client_side_evaluation
from .models import AgentResult, ChainId, Cursor, FilterSet, SearchResult
from .sources import (
    PageSource,
    RecordMapper,
    decode_multi_cursor,
    encode_multi_cursor,
    scan_source,
    select_sources,
)
from .subgraph_client import map_subgraph_agent

logger = logging.getLogger(__name__)

SEARCH_NAMESPACE = "search"


class SearchAggregator:
    """Unified agent search over one or more sources."""

    def __init__(
        self,
        sources: Mapping[ChainId, PageSource],
        cache: LRUCache,
        mapper: RecordMapper = map_subgraph_agent,
        default_chain_id: ChainId = DEFAULT_CHAIN_ID,
        max_pages: int = 10,
        scan_page_size: int = 50,
        dedupe_inflight: bool = True,
    ):
        """
        Initialize the aggregator.

        Args:
            sources: Page source per chain
            cache: Cache handle (may be shared with a CountAggregator)
            mapper: Raw record to AgentResult mapping
            default_chain_id: Chain searched when filters select none
            max_pages: Page budget per source for substring searches
            scan_page_size: Page size used while scanning
            dedupe_inflight: Share one upstream fetch between identical concurrent misses
        """
        self.sources = sources
        self.cache = cache
        self.mapper = mapper
        self.default_chain_id = default_chain_id
        self.max_pages = max_pages
        self.scan_page_size = scan_page_size
        self._inflight = InflightRequests() if dedupe_inflight else None

    def cache_key(self, filters: FilterSet, page_size: int, cursor: Optional[Cursor] = None) -> str:
        return hash_key(
            {"filters": filters.to_dict(), "pageSize": page_size, "cursor": cursor},
            namespace=SEARCH_NAMESPACE,
        )

    async def search(
        self,
        filters: Union[FilterSet, Dict[str, Any], None] = None,
        page_size: int = 50,
        cursor: Optional[Cursor] = None,
    ) -> SearchResult:
        """Search agents.

        Args:
            filters: Filter set (or a plain dict of filters)
            page_size: Page size for paginated (non-substring) searches
            cursor: Continuation token from a previous result

        Returns:
            A SearchResult the caller owns and may mutate

        Raises:
            ValueError: On a malformed multi-chain cursor
            Exception: Source errors propagate unchanged
        """
        if filters is None:
            filters = FilterSet()
        elif not isinstance(filters, FilterSet):
            filters = FilterSet.from_dict(filters)

        key = self.cache_key(filters, page_size, cursor)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Search cache hit: {key}")
            return cached.clone()

        logger.debug(f"Search cache miss: {key}")
        if self._inflight is not None:
            result = await self._inflight.run(key, lambda: self._search_uncached(key, filters, page_size, cursor))
        else:
            result = await self._search_uncached(key, filters, page_size, cursor)
        return result.clone()

    async def _search_uncached(
        self,
        key: str,
        filters: FilterSet,
        page_size: int,
        cursor: Optional[Cursor],
    ) -> SearchResult:
        selected = select_sources(filters, self.sources, self.default_chain_id)

        if not selected:
            result = SearchResult(items=[], nextCursor=None, totalMatches=0)
        elif cursor is None and requires_client_side_evaluation(filters):
            result = await self._search_with_client_filters(filters, selected)
        else:
            result = await self._search_paginated(filters, selected, page_size, cursor)

        self.cache.set(key, result)
        return result

    async def _search_with_client_filters(
        self,
        filters: FilterSet,
        selected: List[Tuple[ChainId, PageSource]],
    ) -> SearchResult:
        """Scan pages of every source, keeping substring matches."""
        native_filters = filters.native_filters()

        def predicate(agent: AgentResult) -> bool:
            return matches_all_filters(agent, filters)

        scans = await asyncio.gather(*(
            scan_source(source, native_filters, predicate, self.mapper, self.scan_page_size, self.max_pages)
            for _, source in selected
        ))

        items: List[AgentResult] = []
        for (chain_id, _), (matches, pages, exhausted) in zip(selected, scans):
            if exhausted:
                logger.info(f"Chain {chain_id}: {len(matches)} matches in {pages} pages")
            else:
                logger.info(
                    f"Chain {chain_id}: {len(matches)} matches, page budget of {self.max_pages} reached "
                    f"before the end of results"
                )
            items.extend(matches)

        return SearchResult(items=items, nextCursor=None, totalMatches=len(items))

    async def _search_paginated(
        self,
        filters: FilterSet,
        selected: List[Tuple[ChainId, PageSource]],
        page_size: int,
        cursor: Optional[Cursor],
    ) -> SearchResult:
        """One request per source, forwarding continuation cursors."""
        native_filters = filters.native_filters()

        if len(selected) == 1:
            _, source = selected[0]
            page = await source.fetch_page(native_filters, page_size, cursor)
            return SearchResult(
                items=[self.mapper(raw) for raw in page.items],
                nextCursor=page.nextCursor or None,
                totalMatches=page.total,
            )

        # Several sources: the cursor holds one continuation per chain
        if cursor:
            chain_cursors = decode_multi_cursor(cursor)
            missing = [chain_id for chain_id, _ in selected if chain_id not in chain_cursors]
            if missing:
                raise ValueError(f"Cursor does not cover requested chains: {missing}")
            pending = [
                (chain_id, source, chain_cursors[chain_id])
                for chain_id, source in selected
                if chain_cursors[chain_id] is not None
            ]
        else:
            pending = [(chain_id, source, None) for chain_id, source in selected]

        logger.info(f"Querying {len(pending)} chains in parallel: {[c for c, _, _ in pending]}")
        pages = await asyncio.gather(*(
            source.fetch_page(native_filters, page_size, chain_cursor)
            for _, source, chain_cursor in pending
        ))

        items: List[AgentResult] = []
        next_cursors: Dict[ChainId, Optional[Cursor]] = {chain_id: None for chain_id, _ in selected}
        totals = []
        for (chain_id, _, _), page in zip(pending, pages):
            items.extend(self.mapper(raw) for raw in page.items)
            next_cursors[chain_id] = page.nextCursor or None
            totals.append(page.total)

        next_cursor = encode_multi_cursor(next_cursors) if any(next_cursors.values()) else None
        # Only exact when every selected source was queried and reported a total
        total = None
        if len(pending) == len(selected) and all(t is not None for t in totals):
            total = sum(totals)

        return SearchResult(items=items, nextCursor=next_cursor, totalMatches=total)
