"""
Shared fixtures: fake clocks, raw subgraph records and in-memory page sources.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from agent_explorer.core.models import RawPage


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource:
    """In-memory page source. Cursors are page indexes."""

    def __init__(self, pages: List[List[Dict[str, Any]]], total: Optional[int] = None, fail_on_page: Optional[int] = None):
        self.pages = pages
        self.total = total
        self.fail_on_page = fail_on_page
        self.calls = []

    async def fetch_page(self, native_filters, page_size, cursor=None):
        self.calls.append((dict(native_filters), page_size, cursor))
        # Yield to the event loop like a network call would
        await asyncio.sleep(0)

        index = int(cursor) if cursor else 0
        if self.fail_on_page is not None and index == self.fail_on_page:
            raise ConnectionError("Subgraph down")

        items = self.pages[index] if index < len(self.pages) else []
        next_cursor = str(index + 1) if index + 1 < len(self.pages) else None
        return RawPage(items=list(items), nextCursor=next_cursor, total=self.total)


def build_raw_agent(
    agent_id: int,
    name: str,
    chain_id: int = 11155111,
    mcp_tools=(),
    a2a_skills=(),
    trusts=(),
    active: bool = True,
    mcp: bool = False,
    a2a: bool = False,
    x402support: bool = False,
) -> Dict[str, Any]:
    return {
        'id': f'{chain_id}:{agent_id}',
        'chainId': str(chain_id),
        'agentId': str(agent_id),
        'owner': '0xabc123',
        'operators': [],
        'totalFeedback': 0,
        'createdAt': 1700000000 + agent_id,
        'updatedAt': 1700000000 + agent_id,
        'registrationFile': {
            'name': name,
            'description': f'{name} description',
            'active': active,
            'x402support': x402support,
            'supportedTrusts': list(trusts),
            'mcpEndpoint': f'https://agent-{agent_id}.example.com/mcp' if mcp else None,
            'a2aEndpoint': f'https://agent-{agent_id}.example.com/a2a' if a2a else None,
            'mcpTools': list(mcp_tools),
            'a2aSkills': list(a2a_skills),
            'mcpPrompts': [],
            'mcpResources': [],
        }
    }


def build_pages(page_count: int, page_size: int, chain_id: int = 11155111, start_id: int = 1) -> List[List[Dict[str, Any]]]:
    """Pages of generic agents named "Agent <n>"."""
    pages = []
    next_id = start_id
    for _ in range(page_count):
        page = []
        for _ in range(page_size):
            page.append(build_raw_agent(next_id, f'Agent {next_id}', chain_id=chain_id))
            next_id += 1
        pages.append(page)
    return pages


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def raw_agent():
    return build_raw_agent


@pytest.fixture
def make_pages():
    return build_pages


@pytest.fixture
def fake_source():
    return FakeSource
