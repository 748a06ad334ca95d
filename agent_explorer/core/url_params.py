"""
Conversion between filter sets and URL query strings.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union
from urllib.parse import parse_qsl, urlencode

from .models import FilterSet

# query parameter -> filter field
_LIST_PARAMS = {
    "mcpTools": "mcpTools",
    "a2aSkills": "a2aSkills",
    "mcpPrompts": "mcpPrompts",
    "mcpResources": "mcpResources",
    "supportedTrust": "supportedTrust",
}
_FLAG_PARAMS = {
    "mcp": "mcp",
    "a2a": "a2a",
    "active": "active",
    "x402": "x402support",
}


def _split(value: str):
    return [part.strip() for part in value.split(",") if part.strip()]


def filters_from_query(query: Union[str, Mapping[str, str]]) -> FilterSet:
    """Parse filters from a query string (``"name=x&mcp=true"``) or mapping.

    Only ``true`` enables a flag; anything else leaves it unset.
    """
    if isinstance(query, str):
        params = dict(parse_qsl(query.lstrip("?")))
    else:
        params = dict(query)

    data: Dict[str, Any] = {}

    if params.get("name"):
        data["name"] = params["name"]

    for param, field_name in _LIST_PARAMS.items():
        if params.get(param):
            terms = _split(params[param])
            if terms:
                data[field_name] = terms

    for param, field_name in _FLAG_PARAMS.items():
        if params.get(param) == "true":
            data[field_name] = True

    chains = params.get("chains")
    if chains:
        if chains == "all":
            data["chains"] = "all"
        else:
            chain_ids = [int(c) for c in _split(chains) if c.isdigit()]
            if chain_ids:
                data["chains"] = chain_ids

    return FilterSet(**data)


def filters_to_query(filters: FilterSet) -> str:
    """Render filters as a query string (without ``?``), "" when none are set."""
    data = filters.to_dict()
    params = []

    if data.get("name"):
        params.append(("name", data["name"]))
    for param, field_name in _LIST_PARAMS.items():
        if data.get(field_name):
            params.append((param, ",".join(data[field_name])))
    for param, field_name in _FLAG_PARAMS.items():
        if data.get(field_name):
            params.append((param, "true"))

    chains = data.get("chains")
    if chains == "all":
        params.append(("chains", "all"))
    elif chains:
        params.append(("chains", ",".join(str(c) for c in chains)))

    return urlencode(params)
