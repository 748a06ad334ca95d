"""
Partial-match filter predicates for agent search.

Used by both the paginated search path and the exhaustive count scan, so the
two never disagree about what matches.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .models import AgentResult, FilterSet

# Filter field -> AgentResult field
TERM_LIST_FIELDS = {
    "mcpTools": "mcpTools",
    "a2aSkills": "a2aSkills",
    "mcpPrompts": "mcpPrompts",
    "mcpResources": "mcpResources",
    "supportedTrust": "supportedTrusts",
}

FLAG_FIELDS = ("mcp", "a2a", "active", "x402support")


def matches_text(value: Optional[str], term: str) -> bool:
    """Case-insensitive substring match of ``term`` within ``value``."""
    if not value:
        return False
    return term.lower() in value.lower()


def matches_terms(entity_terms: Optional[Iterable[str]], filter_terms: Optional[Iterable[str]]) -> bool:
    """Check that every filter term is a substring of at least one entity term.

    >>> matches_terms(["github", "slack"], ["git"])
    True
    >>> matches_terms(["github", "slack"], ["git", "db"])
    False
    """
    filter_terms = list(filter_terms or [])
    if not filter_terms:
        return True
    entity_terms = [t.lower() for t in entity_terms or []]
    if not entity_terms:
        return False

    return all(
        any(term.lower() in entity_term for entity_term in entity_terms)
        for term in filter_terms
    )


def matches_flag(value: Any, expected: Optional[bool]) -> bool:
    if expected is None:
        return True
    return value == expected


def _as_dict(filters: Union[FilterSet, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(filters, FilterSet):
        return filters.to_dict()
    return dict(filters)


def matches_all_filters(agent: AgentResult, filters: Union[FilterSet, Mapping[str, Any]]) -> bool:
    """Check if an agent satisfies every specified filter (AND)."""
    f = _as_dict(filters)

    name = f.get("name")
    if name and not matches_text(agent.name, name):
        return False

    for filter_field, agent_field in TERM_LIST_FIELDS.items():
        terms = f.get(filter_field)
        if terms and not matches_terms(getattr(agent, agent_field, None), terms):
            return False

    for flag in FLAG_FIELDS:
        if not matches_flag(getattr(agent, flag, None), f.get(flag)):
            return False

    return True


def requires_client_side_evaluation(filters: Union[FilterSet, Mapping[str, Any]]) -> bool:
    """True if any filter needs substring matching the sources cannot do."""
    f = _as_dict(filters)
    if f.get("name"):
        return True
    return any(f.get(field) for field in TERM_LIST_FIELDS)
