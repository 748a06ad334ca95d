"""
Core data models for the agent explorer search layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Literal, Optional, Union

logger = logging.getLogger(__name__)


# Type aliases
AgentId = str  # "chainId:tokenId" (e.g., "84532:12")
ChainId = int
Address = str  # 0x-hex
URI = str  # https://... or ipfs://...
Cursor = str  # opaque continuation token, only meaningful to the source that issued it


# Fields evaluated client-side (substring matching), never sent upstream
CLIENT_FILTER_FIELDS = ("name", "mcpTools", "a2aSkills", "mcpPrompts", "mcpResources", "supportedTrust")

# Fields every source can evaluate exactly
NATIVE_FILTER_FIELDS = ("mcp", "a2a", "active", "x402support", "owners", "operators", "walletAddress")


def _is_unset(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and len(value) == 0)


@dataclass(frozen=True)
class FilterSet:
    """Search filters for agent discovery.

    Absent fields impose no constraint, and an empty term list or name is the
    same as an absent one.
    """
    chains: Optional[Union[List[ChainId], Literal["all"]]] = None  # None = default chain
    name: Optional[str] = None  # case-insensitive substring
    # Term lists: every term must be a substring of one of the agent's terms
    mcpTools: Optional[List[str]] = None
    a2aSkills: Optional[List[str]] = None
    mcpPrompts: Optional[List[str]] = None
    mcpResources: Optional[List[str]] = None
    supportedTrust: Optional[List[str]] = None  # e.g. ["reputation"]
    # Boolean flags (exact equality)
    mcp: Optional[bool] = None
    a2a: Optional[bool] = None
    active: Optional[bool] = None
    x402support: Optional[bool] = None
    # Source-native equality filters
    owners: Optional[List[Address]] = None
    operators: Optional[List[Address]] = None
    walletAddress: Optional[Address] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping unset and empty values."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            # An empty chain list selects nothing, unlike an absent one
            if value is None or (f.name != "chains" and _is_unset(value)):
                continue
            result[f.name] = list(value) if isinstance(value, (list, tuple)) else value
        return result

    def client_filters(self) -> Dict[str, Any]:
        """Filters that must be evaluated in this layer."""
        data = self.to_dict()
        return {k: data[k] for k in CLIENT_FILTER_FIELDS if k in data}

    def native_filters(self) -> Dict[str, Any]:
        """Filters a source can evaluate exactly."""
        data = self.to_dict()
        return {k: data[k] for k in NATIVE_FILTER_FIELDS if k in data}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FilterSet:
        """Create from dictionary, ignoring keys that are not filters."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown filter keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class AgentResult:
    """Normalized agent record as returned by search."""
    id: AgentId
    name: str
    description: Optional[str] = None
    image: Optional[URI] = None
    chainId: Optional[ChainId] = None
    # Capabilities
    mcp: bool = False
    a2a: bool = False
    mcpTools: List[str] = field(default_factory=list)
    a2aSkills: List[str] = field(default_factory=list)
    mcpPrompts: List[str] = field(default_factory=list)
    mcpResources: List[str] = field(default_factory=list)
    # Status
    active: bool = False
    x402support: bool = False
    # Trust & governance
    supportedTrusts: List[str] = field(default_factory=list)
    owners: List[Address] = field(default_factory=list)
    operators: List[Address] = field(default_factory=list)
    walletAddress: Optional[Address] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def clone(self) -> AgentResult:
        """Copy with fresh list and dict references."""
        return replace(
            self,
            mcpTools=list(self.mcpTools),
            a2aSkills=list(self.a2aSkills),
            mcpPrompts=list(self.mcpPrompts),
            mcpResources=list(self.mcpResources),
            supportedTrusts=list(self.supportedTrusts),
            owners=list(self.owners),
            operators=list(self.operators),
            extras=dict(self.extras),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class RawPage:
    """One page of raw records from a source."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    nextCursor: Optional[Cursor] = None  # None = no more pages
    total: Optional[int] = None  # only when the source can report it cheaply


@dataclass
class SearchResult:
    """Result of a search call."""
    items: List[AgentResult] = field(default_factory=list)
    nextCursor: Optional[Cursor] = None
    totalMatches: Optional[int] = None

    def clone(self) -> SearchResult:
        return SearchResult(
            items=[item.clone() for item in self.items],
            nextCursor=self.nextCursor,
            totalMatches=self.totalMatches,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "nextCursor": self.nextCursor,
            "totalMatches": self.totalMatches,
        }


@dataclass
class AgentStats:
    """Aggregate statistics over a set of agents."""
    total: int = 0
    active: int = 0
    withMcp: int = 0
    withA2a: int = 0
    withX402: int = 0

    @classmethod
    def from_agents(cls, agents: List[AgentResult]) -> AgentStats:
        return cls(
            total=len(agents),
            active=sum(1 for a in agents if a.active),
            withMcp=sum(1 for a in agents if a.mcp),
            withA2a=sum(1 for a in agents if a.a2a),
            withX402=sum(1 for a in agents if a.x402support),
        )
