"""
Async client for the ERC-8004 agent registry subgraph, and the page source
built on top of it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import aiohttp
from eth_utils import is_address, to_checksum_address

from .models import AgentResult, Cursor, RawPage

logger = logging.getLogger(__name__)


AGENTS_QUERY = """
query SearchAgents($where: Agent_filter, $first: Int!, $skip: Int!, $orderBy: Agent_orderBy, $orderDirection: OrderDirection) {
  agents(where: $where, first: $first, skip: $skip, orderBy: $orderBy, orderDirection: $orderDirection) {
    id
    chainId
    agentId
    owner
    operators
    totalFeedback
    createdAt
    updatedAt
    lastActivity
    registrationFile {
      name
      description
      image
      active
      x402support
      supportedTrusts
      mcpEndpoint
      a2aEndpoint
      ens
      did
      agentWallet
      mcpTools
      a2aSkills
      mcpPrompts
      mcpResources
    }
  }
}
"""


class SubgraphClient:
    """Minimal GraphQL client for one chain's subgraph."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.timeout = timeout
        self._session = session

    async def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL query and return its ``data``.

        Raises:
            aiohttp.ClientError: On transport failures or non-2xx responses
            ValueError: If the response carries GraphQL errors
        """
        payload = {"query": query, "variables": variables or {}}
        if self._session is not None:
            return await self._post(self._session, payload)
        async with aiohttp.ClientSession() as session:
            return await self._post(session, payload)

    async def _post(self, session: aiohttp.ClientSession, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with session.post(
            self.url,
            json=payload,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            response.raise_for_status()
            body = await response.json()

        if body.get("errors"):
            messages = "; ".join(str(e.get("message", e)) for e in body["errors"])
            raise ValueError(f"Subgraph query failed: {messages}")
        return body.get("data") or {}

    async def get_agents(
        self,
        where: Optional[Dict[str, Any]] = None,
        first: int = 100,
        skip: int = 0,
        order_by: str = "createdAt",
        order_direction: str = "desc",
    ) -> List[Dict[str, Any]]:
        """Fetch one page of agents."""
        data = await self.query(
            AGENTS_QUERY,
            {
                "where": where or {},
                "first": first,
                "skip": skip,
                "orderBy": order_by,
                "orderDirection": order_direction,
            },
        )
        return data.get("agents") or []


def build_where_clause(native_filters: Dict[str, Any]) -> Dict[str, Any]:
    """Translate native filters into a subgraph ``where`` input."""
    where_clause: Dict[str, Any] = {}
    reg_file_where: Dict[str, Any] = {}

    if native_filters.get("active") is not None:
        reg_file_where["active"] = native_filters["active"]
    if native_filters.get("x402support") is not None:
        reg_file_where["x402support"] = native_filters["x402support"]
    if native_filters.get("mcp") is not None:
        if native_filters["mcp"]:
            reg_file_where["mcpEndpoint_not"] = None
        else:
            reg_file_where["mcpEndpoint"] = None
    if native_filters.get("a2a") is not None:
        if native_filters["a2a"]:
            reg_file_where["a2aEndpoint_not"] = None
        else:
            reg_file_where["a2aEndpoint"] = None
    if native_filters.get("walletAddress") is not None:
        reg_file_where["agentWallet"] = native_filters["walletAddress"]

    if reg_file_where:
        where_clause["registrationFile_"] = reg_file_where

    # Addresses are stored lowercase
    owners = native_filters.get("owners")
    if owners:
        normalized_owners = [owner.lower() for owner in owners]
        if len(normalized_owners) == 1:
            where_clause["owner"] = normalized_owners[0]
        else:
            where_clause["owner_in"] = normalized_owners

    operators = native_filters.get("operators")
    if operators:
        where_clause["operators_contains"] = [op.lower() for op in operators]

    return where_clause


def _to_chain_id(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def map_subgraph_agent(agent: Dict[str, Any]) -> AgentResult:
    """Map a raw subgraph agent record to an AgentResult."""
    reg_file = agent.get("registrationFile") or {}
    if not isinstance(reg_file, dict):
        reg_file = {}

    wallet = reg_file.get("agentWallet")
    if wallet and is_address(wallet):
        wallet = to_checksum_address(wallet)

    extras = {}
    for key in ("totalFeedback", "createdAt", "updatedAt", "lastActivity"):
        if agent.get(key) is not None:
            extras[key] = agent[key]
    for key in ("ens", "did"):
        if reg_file.get(key):
            extras[key] = reg_file[key]

    owner = agent.get("owner")
    return AgentResult(
        id=agent.get("id") or "",
        name=reg_file.get("name") or f"Agent {agent.get('agentId', '')}".strip(),
        description=reg_file.get("description"),
        image=reg_file.get("image"),
        chainId=_to_chain_id(agent.get("chainId")),
        mcp=reg_file.get("mcpEndpoint") is not None,
        a2a=reg_file.get("a2aEndpoint") is not None,
        mcpTools=list(reg_file.get("mcpTools") or []),
        a2aSkills=list(reg_file.get("a2aSkills") or []),
        mcpPrompts=list(reg_file.get("mcpPrompts") or []),
        mcpResources=list(reg_file.get("mcpResources") or []),
        active=bool(reg_file.get("active", False)),
        x402support=bool(reg_file.get("x402support", False)),
        supportedTrusts=list(reg_file.get("supportedTrusts") or []),
        owners=[owner] if owner else [],
        operators=list(agent.get("operators") or []),
        walletAddress=wallet,
        extras=extras,
    )


class SubgraphSource:
    """Page source backed by a subgraph. Cursors are ``skip`` offsets."""

    def __init__(
        self,
        client: SubgraphClient,
        order_by: str = "createdAt",
        order_direction: str = "desc",
    ):
        self.client = client
        self.order_by = order_by
        self.order_direction = order_direction

    async def fetch_page(
        self,
        native_filters: Dict[str, Any],
        page_size: int,
        cursor: Optional[Cursor] = None,
    ) -> RawPage:
        skip = 0
        if cursor:
            try:
                skip = int(cursor)
            except ValueError as e:
                raise ValueError(f"Invalid subgraph cursor: {cursor!r}") from e

        where = build_where_clause(native_filters)
        agents = await self.client.get_agents(
            where=where or None,
            first=page_size,
            skip=skip,
            order_by=self.order_by,
            order_direction=self.order_direction,
        )

        # A short page means the stream is exhausted
        next_cursor = str(skip + len(agents)) if len(agents) == page_size else None
        return RawPage(items=agents, nextCursor=next_cursor)
