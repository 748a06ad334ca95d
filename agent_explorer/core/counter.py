"""
Exact counts by exhaustive scan.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Union

from .cache import InflightRequests, LRUCache
from .cache_key import hash_key
from .chains import DEFAULT_CHAIN_ID
from .filters import matches_all_filters
from .models import AgentResult, AgentStats, ChainId, FilterSet
from .sources import PageSource, RecordMapper, scan_source, select_sources
from .subgraph_client import map_subgraph_agent

logger = logging.getLogger(__name__)

COUNT_NAMESPACE = "count"
AGENTS_NAMESPACE = "agents"


class CountAggregator:
    """Counts matching agents by visiting every page of every selected source.

    Unlike search, no page budget applies. Shares the search cache under its
    own key namespaces.
    """

    def __init__(
        self,
        sources: Mapping[ChainId, PageSource],
        cache: LRUCache,
        mapper: RecordMapper = map_subgraph_agent,
        default_chain_id: ChainId = DEFAULT_CHAIN_ID,
        page_size: int = 100,
        dedupe_inflight: bool = True,
    ):
        self.sources = sources
        self.cache = cache
        self.mapper = mapper
        self.default_chain_id = default_chain_id
        self.page_size = page_size
        self._inflight = InflightRequests() if dedupe_inflight else None

    @staticmethod
    def _normalize(filters: Union[FilterSet, Dict[str, Any], None]) -> FilterSet:
        if filters is None:
            return FilterSet()
        if isinstance(filters, FilterSet):
            return filters
        return FilterSet.from_dict(filters)

    async def _dedupe(self, key, factory):
        if self._inflight is None:
            return await factory()
        return await self._inflight.run(key, factory)

    async def count(self, filters: Union[FilterSet, Dict[str, Any], None] = None) -> int:
        """Exact number of agents matching ``filters``."""
        filters = self._normalize(filters)
        key = self._count_key(filters)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Count cache hit: {key}")
            return cached
        return len(await self._matching_agents(filters))

    async def matching_agents(self, filters: Union[FilterSet, Dict[str, Any], None] = None) -> List[AgentResult]:
        """Every agent matching ``filters``, as copies the caller owns."""
        agents = await self._matching_agents(self._normalize(filters))
        return [agent.clone() for agent in agents]

    async def stats(self, filters: Union[FilterSet, Dict[str, Any], None] = None) -> AgentStats:
        """Protocol and status breakdown of the agents matching ``filters``."""
        return AgentStats.from_agents(await self._matching_agents(self._normalize(filters)))

    @staticmethod
    def _count_key(filters: FilterSet) -> str:
        return hash_key({"filters": filters.to_dict()}, namespace=COUNT_NAMESPACE)

    async def _matching_agents(self, filters: FilterSet) -> List[AgentResult]:
        key = hash_key({"filters": filters.to_dict()}, namespace=AGENTS_NAMESPACE)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Agents cache hit: {key}")
            return cached

        async def compute() -> List[AgentResult]:
            agents = await self._scan_all(filters)
            # A count is only written with the scan it comes from
            self.cache.set(key, agents)
            self.cache.set(self._count_key(filters), len(agents))
            return agents

        return await self._dedupe(key, compute)

    async def _scan_all(self, filters: FilterSet) -> List[AgentResult]:
        selected = select_sources(filters, self.sources, self.default_chain_id)
        if not selected:
            return []

        native_filters = filters.native_filters()

        def predicate(agent: AgentResult) -> bool:
            return matches_all_filters(agent, filters)

        scans = await asyncio.gather(*(
            scan_source(source, native_filters, predicate, self.mapper, self.page_size)
            for _, source in selected
        ))

        agents: List[AgentResult] = []
        for (chain_id, _), (matches, pages, _) in zip(selected, scans):
            logger.info(f"Chain {chain_id}: counted {len(matches)} matching agents in {pages} pages")
            agents.extend(matches)
        return agents
