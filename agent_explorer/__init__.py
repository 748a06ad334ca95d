"""
Agent Explorer: search aggregation and caching over ERC-8004 agent registries.
"""

from .core.cache import LRUCache
from .core.cache_key import canonicalize, hash_key
from .core.counter import CountAggregator
from .core.explorer import AgentExplorer, ExplorerConfig
from .core.filters import matches_all_filters, requires_client_side_evaluation
from .core.models import AgentResult, AgentStats, FilterSet, RawPage, SearchResult
from .core.search import SearchAggregator
from .core.sources import PageSource
from .core.subgraph_client import SubgraphClient, SubgraphSource, map_subgraph_agent
from .core.url_params import filters_from_query, filters_to_query

__version__ = "0.1.0"

__all__ = [
    "AgentExplorer",
    "ExplorerConfig",
    "SearchAggregator",
    "CountAggregator",
    "LRUCache",
    "FilterSet",
    "AgentResult",
    "AgentStats",
    "RawPage",
    "SearchResult",
    "PageSource",
    "SubgraphClient",
    "SubgraphSource",
    "map_subgraph_agent",
    "canonicalize",
    "hash_key",
    "matches_all_filters",
    "requires_client_side_evaluation",
    "filters_from_query",
    "filters_to_query",
]
