"""
Tests for the AgentExplorer facade and its configuration.
"""

import os

import pytest

from agent_explorer import AgentExplorer, ExplorerConfig, FilterSet, LRUCache
from agent_explorer.core.models import AgentStats
from agent_explorer.core.subgraph_client import SubgraphSource, map_subgraph_agent

CHAIN = 11155111
BASE = 84532


@pytest.fixture
def no_subgraph_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("SUBGRAPH_URL_"):
            monkeypatch.delenv(key)


class TestExplorerConfig:
    def test_defaults(self):
        config = ExplorerConfig()
        assert config.default_chain_id == CHAIN
        assert config.cache_max_size == 50
        assert config.cache_ttl == 300
        assert config.max_pages == 10

    def test_from_env(self):
        config = ExplorerConfig.from_env({
            "CHAIN_ID": "84532",
            "SEARCH_CACHE_SIZE": "10",
            "SEARCH_CACHE_TTL": "60",
            "SEARCH_MAX_PAGES": "3",
            "SUBGRAPH_URL_84532": "https://base.example.com",
            "SUBGRAPH_URL_mainnet": "https://ignored.example.com",
        })

        assert config.default_chain_id == BASE
        assert config.cache_max_size == 10
        assert config.cache_ttl == 60.0
        assert config.max_pages == 3
        assert config.subgraph_urls == {BASE: "https://base.example.com"}

    def test_resolve_subgraph_url_ignores_process_env(self, monkeypatch):
        monkeypatch.setenv("SUBGRAPH_URL_80002", "https://amoy-process.example.com")
        config = ExplorerConfig.from_env({"SUBGRAPH_URL_84532": "https://base.example.com"})

        assert config.resolve_subgraph_url(BASE) == "https://base.example.com"
        assert config.resolve_subgraph_url(80002) is None
        assert config.resolve_subgraph_url(CHAIN) is None

    def test_from_process_env(self, no_subgraph_env, monkeypatch):
        monkeypatch.setenv("SUBGRAPH_URL_80002", "https://amoy.example.com")
        assert ExplorerConfig.from_env().resolve_subgraph_url(80002) == "https://amoy.example.com"


class TestAgentExplorerSetup:
    def test_injected_empty_cache_is_kept(self):
        cache = LRUCache(max_size=7, ttl=1)
        explorer = AgentExplorer(config=ExplorerConfig(), sources={}, cache=cache)

        assert explorer.cache is cache
        assert explorer.search_aggregator.cache is cache
        assert explorer.count_aggregator.cache is cache
        assert explorer.getStats()["maxSize"] == 7

    def test_injected_mapper_is_used(self, fake_source, raw_agent):
        def mapper(raw):
            return map_subgraph_agent(raw).clone()

        sources = {CHAIN: fake_source([[raw_agent(1, 'A')]])}
        explorer = AgentExplorer(config=ExplorerConfig(), sources=sources, mapper=mapper)

        assert explorer.search_aggregator.mapper is mapper
        assert explorer.count_aggregator.mapper is mapper

    def test_builds_sources_for_configured_chains(self, no_subgraph_env):
        explorer = AgentExplorer(config=ExplorerConfig(subgraph_urls={BASE: "https://base.example.com"}))

        assert explorer.chains == [BASE]
        assert isinstance(explorer.sources[BASE], SubgraphSource)
        assert explorer.sources[BASE].client.url == "https://base.example.com"

    def test_cache_settings_from_config(self, no_subgraph_env):
        explorer = AgentExplorer(config=ExplorerConfig(cache_max_size=7, cache_ttl=30))
        stats = explorer.getStats()
        assert stats["maxSize"] == 7
        assert stats["ttl"] == 30

    def test_aggregators_share_cache(self, no_subgraph_env):
        explorer = AgentExplorer(config=ExplorerConfig())
        assert explorer.search_aggregator.cache is explorer.count_aggregator.cache is explorer.cache

    def test_no_sources_returns_empty(self, no_subgraph_env):
        explorer = AgentExplorer(config=ExplorerConfig())

        result = explorer.searchAgents(name="ciro")

        assert result.items == []
        assert result.totalMatches == 0
        assert explorer.countAgents() == 0


class TestAgentExplorerSearch:

    @pytest.fixture
    def source(self, fake_source, raw_agent):
        return fake_source([
            [
                raw_agent(1, 'Ciro Helper', mcp_tools=['github'], mcp=True),
                raw_agent(2, 'Translator', a2a_skills=['translation'], a2a=True, active=False),
            ],
            [
                raw_agent(3, 'Ciro Auditor', trusts=['reputation'], x402support=True),
            ],
        ])

    @pytest.fixture
    def explorer(self, source, clock):
        return AgentExplorer(
            config=ExplorerConfig(),
            sources={CHAIN: source},
            cache=LRUCache(max_size=50, ttl=300, clock=clock),
        )

    def test_search_with_kwargs(self, explorer):
        result = explorer.searchAgents(name="ciro")
        assert [item.name for item in result.items] == ['Ciro Helper', 'Ciro Auditor']

    def test_search_with_filter_set_and_dict(self, explorer):
        assert explorer.searchAgents(FilterSet(mcpTools=["git"])).totalMatches == 1
        assert explorer.searchAgents({"supportedTrust": ["rep"]}).totalMatches == 1

    def test_pass_through_search(self, explorer, source):
        result = explorer.searchAgents(active=True, page_size=2)

        assert len(result.items) == 2
        assert result.nextCursor == "1"
        assert source.calls[0] == ({"active": True}, 2, None)

    def test_count_and_stats(self, explorer):
        assert explorer.countAgents(name="ciro") == 2
        assert explorer.getAgentStats() == AgentStats(total=3, active=2, withMcp=1, withA2a=1, withX402=1)

    @pytest.mark.asyncio
    async def test_async_api(self, explorer):
        result = await explorer.search_agents(name="translator")
        agents = await explorer.list_all_agents(mcp=True)

        assert [item.id for item in result.items] == [f'{CHAIN}:2']
        assert [agent.name for agent in agents] == ['Ciro Helper']
        assert await explorer.count_agents(a2a=True) == 1

    def test_cache_management(self, explorer, source, clock):
        explorer.searchAgents(name="ciro")
        explorer.searchAgents(name="ciro")
        assert len(source.calls) == 2

        stats = explorer.getStats()
        assert stats["size"] == 1
        assert stats["hits"] == 1

        explorer.clearCache()
        assert explorer.getStats()["size"] == 0
        explorer.searchAgents(name="ciro")
        assert len(source.calls) == 4

        clock.advance(301)
        assert explorer.cleanupCache() == 1
        assert explorer.getStats()["size"] == 0

    def test_keyword_filters_merge_with_params(self, explorer, source):
        assert explorer.countAgents({"name": "ciro"}, mcpTools=["git"]) == 1
        assert explorer.countAgents(FilterSet(name="ciro"), chains=[BASE]) == 0

    def test_keyword_filters_override_params(self, explorer):
        result = explorer.searchAgents(FilterSet(name="translator"), name="auditor")
        assert [item.name for item in result.items] == ['Ciro Auditor']
