"""
Main entry point for agent search.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Union

from .cache import LRUCache
from .chains import DEFAULT_CHAIN_ID, SUPPORTED_CHAINS
from .counter import CountAggregator
from .models import AgentResult, AgentStats, ChainId, Cursor, FilterSet, SearchResult
from .search import SearchAggregator
from .sources import PageSource, RecordMapper
from .subgraph_client import SubgraphClient, SubgraphSource, map_subgraph_agent

logger = logging.getLogger(__name__)


@dataclass
class ExplorerConfig:
    """Search layer settings."""
    default_chain_id: ChainId = DEFAULT_CHAIN_ID
    subgraph_urls: Dict[ChainId, str] = field(default_factory=dict)  # per-chain overrides
    cache_max_size: int = 50  # entries
    cache_ttl: float = 5 * 60  # seconds
    max_pages: int = 10  # page budget for substring searches (500 agents at 50/page)
    scan_page_size: int = 50
    count_page_size: int = 100
    request_timeout: float = 10.0  # seconds

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ExplorerConfig:
        """Build settings from environment variables.

        Reads CHAIN_ID, SUBGRAPH_URL_<chainId>, SEARCH_CACHE_SIZE,
        SEARCH_CACHE_TTL and SEARCH_MAX_PAGES.
        """
        env = os.environ if environ is None else environ
        config = cls()

        if env.get("CHAIN_ID"):
            config.default_chain_id = int(env["CHAIN_ID"])
        if env.get("SEARCH_CACHE_SIZE"):
            config.cache_max_size = int(env["SEARCH_CACHE_SIZE"])
        if env.get("SEARCH_CACHE_TTL"):
            config.cache_ttl = float(env["SEARCH_CACHE_TTL"])
        if env.get("SEARCH_MAX_PAGES"):
            config.max_pages = int(env["SEARCH_MAX_PAGES"])

        for key, value in env.items():
            if key.startswith("SUBGRAPH_URL_") and value:
                try:
                    chain_id = int(key[len("SUBGRAPH_URL_"):])
                except ValueError:
                    logger.warning(f"Ignoring {key}: not a chain id")
                    continue
                config.subgraph_urls[chain_id] = value

        return config

    def resolve_subgraph_url(self, chain_id: ChainId) -> Optional[str]:
        """Get subgraph URL for a specific chain, None if not configured.

        Environment variables are only read by ``from_env``.
        """
        return self.subgraph_urls.get(chain_id) or None


class AgentExplorer:
    """Search, count and cache management for agent discovery."""

    def __init__(
        self,
        config: Optional[ExplorerConfig] = None,
        sources: Optional[Mapping[ChainId, PageSource]] = None,
        cache: Optional[LRUCache] = None,
        mapper: Optional[RecordMapper] = None,
    ):
        """
        Initialize the explorer.

        Args:
            config: Settings (default: ExplorerConfig.from_env())
            sources: Page source per chain; built from subgraph URLs when omitted
            cache: Cache handle shared by search and count
            mapper: Raw record mapping (default: subgraph agent mapping)
        """
        self.config = config if config is not None else ExplorerConfig.from_env()
        self.sources = dict(sources) if sources is not None else self._create_subgraph_sources()
        if cache is None:
            cache = LRUCache(max_size=self.config.cache_max_size, ttl=self.config.cache_ttl)
        self.cache = cache
        if mapper is None:
            mapper = map_subgraph_agent

        self.search_aggregator = SearchAggregator(
            sources=self.sources,
            cache=self.cache,
            mapper=mapper,
            default_chain_id=self.config.default_chain_id,
            max_pages=self.config.max_pages,
            scan_page_size=self.config.scan_page_size,
        )
        self.count_aggregator = CountAggregator(
            sources=self.sources,
            cache=self.cache,
            mapper=mapper,
            default_chain_id=self.config.default_chain_id,
            page_size=self.config.count_page_size,
        )

    def _create_subgraph_sources(self) -> Dict[ChainId, PageSource]:
        """Create one subgraph source per chain that has a URL configured."""
        chain_ids = set(SUPPORTED_CHAINS) | set(self.config.subgraph_urls) | {self.config.default_chain_id}
        sources: Dict[ChainId, PageSource] = {}
        for chain_id in sorted(chain_ids):
            url = self.config.resolve_subgraph_url(chain_id)
            if url is None:
                logger.debug(f"No subgraph URL configured for chain {chain_id}")
                continue
            sources[chain_id] = SubgraphSource(SubgraphClient(url, timeout=self.config.request_timeout))
            logger.info(f"Created subgraph source for chain {chain_id}: {url}")

        if not sources:
            logger.warning("No subgraph URLs configured; searches will return no results")
        return sources

    @property
    def chains(self) -> List[ChainId]:
        """Chains with a configured source."""
        return sorted(self.sources)

    @staticmethod
    def _build_filters(params: Union[FilterSet, Dict[str, Any], None], kwargs: Dict[str, Any]) -> FilterSet:
        """Combine explicit params with keyword filters; keywords win."""
        if params is None:
            return FilterSet(**kwargs)
        if isinstance(params, dict):
            params = FilterSet.from_dict(params)
        return replace(params, **kwargs) if kwargs else params

    # Async API
    async def search_agents(
        self,
        params: Union[FilterSet, Dict[str, Any], None] = None,
        page_size: int = 50,
        cursor: Optional[Cursor] = None,
        **kwargs,
    ) -> SearchResult:
        return await self.search_aggregator.search(self._build_filters(params, kwargs), page_size, cursor)

    async def count_agents(self, params: Union[FilterSet, Dict[str, Any], None] = None, **kwargs) -> int:
        return await self.count_aggregator.count(self._build_filters(params, kwargs))

    async def list_all_agents(self, params: Union[FilterSet, Dict[str, Any], None] = None, **kwargs) -> List[AgentResult]:
        return await self.count_aggregator.matching_agents(self._build_filters(params, kwargs))

    async def agent_stats(self, params: Union[FilterSet, Dict[str, Any], None] = None, **kwargs) -> AgentStats:
        return await self.count_aggregator.stats(self._build_filters(params, kwargs))

    # Sync API
    def searchAgents(
        self,
        params: Union[FilterSet, Dict[str, Any], None] = None,
        page_size: int = 50,
        cursor: Optional[Cursor] = None,
        **kwargs,
    ) -> SearchResult:
        """Search for agents.

        Examples:
            explorer.searchAgents(name="ciro")
            explorer.searchAgents(mcpTools=["git"], active=True, chains="all")
            explorer.searchAgents(FilterSet(mcp=True), page_size=20)

            # Next page of a paginated (non-substring) search
            page = explorer.searchAgents(active=True)
            explorer.searchAgents(active=True, cursor=page.nextCursor)
        """
        return asyncio.run(self.search_agents(params, page_size, cursor, **kwargs))

    def countAgents(self, params: Union[FilterSet, Dict[str, Any], None] = None, **kwargs) -> int:
        """Exact number of matching agents (scans every page)."""
        return asyncio.run(self.count_agents(params, **kwargs))

    def getAgentStats(self, params: Union[FilterSet, Dict[str, Any], None] = None, **kwargs) -> AgentStats:
        return asyncio.run(self.agent_stats(params, **kwargs))

    # Cache management
    def clearCache(self) -> None:
        self.cache.clear()

    def cleanupCache(self) -> int:
        """Drop expired cache entries. Returns the number removed."""
        return self.cache.cleanup()

    def getStats(self) -> Dict[str, Any]:
        """Cache statistics."""
        return self.cache.get_stats()
