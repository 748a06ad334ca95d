"""
Per-chain page sources and the scanning helpers shared by search and count.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .models import AgentResult, ChainId, Cursor, FilterSet, RawPage

logger = logging.getLogger(__name__)


RecordMapper = Callable[[Dict[str, Any]], AgentResult]
Predicate = Callable[[AgentResult], bool]


@runtime_checkable
class PageSource(Protocol):
    """One independently queried registry (one chain).

    ``native_filters`` only ever holds filters the source evaluates exactly
    (boolean flags, owners, operators, walletAddress).
    """

    async def fetch_page(
        self,
        native_filters: Dict[str, Any],
        page_size: int,
        cursor: Optional[Cursor] = None,
    ) -> RawPage:
        ...


def select_sources(
    filters: FilterSet,
    sources: Mapping[ChainId, PageSource],
    default_chain_id: ChainId,
) -> List[Tuple[ChainId, PageSource]]:
    """Resolve the chain selector of a filter set to configured sources.

    None selects the default chain, "all" every configured source (by
    ascending chain id), and a list those chains in the given order.
    Unconfigured chains are dropped.
    """
    if filters.chains is None:
        requested = [default_chain_id]
    elif filters.chains == "all":
        requested = sorted(sources)
    else:
        requested = list(dict.fromkeys(filters.chains))

    missing = [c for c in requested if c not in sources]
    if missing:
        logger.warning(
            f"Requested chains not configured: {missing}. "
            f"Available chains: {sorted(sources)}"
        )

    return [(chain_id, sources[chain_id]) for chain_id in requested if chain_id in sources]


async def scan_source(
    source: PageSource,
    native_filters: Dict[str, Any],
    predicate: Predicate,
    mapper: RecordMapper,
    page_size: int,
    max_pages: Optional[int] = None,
) -> Tuple[List[AgentResult], int, bool]:
    """Follow a source's cursors, collecting every mapped record that matches.

    Pages are fetched one after another since each cursor comes from the
    previous page.

    Args:
        source: Source to scan
        native_filters: Filters forwarded upstream
        predicate: Client-side match applied to every mapped record
        mapper: Raw record to AgentResult mapping
        page_size: Records requested per page
        max_pages: Page budget, None for no limit

    Returns:
        (matches, pages_fetched, exhausted)
    """
    matches: List[AgentResult] = []
    cursor: Optional[Cursor] = None
    pages = 0

    while max_pages is None or pages < max_pages:
        page = await source.fetch_page(native_filters, page_size, cursor)
        pages += 1
        matches.extend(agent for agent in map(mapper, page.items) if predicate(agent))
        logger.debug(f"Scanned page {pages}: {len(page.items)} records, {len(matches)} matches so far")

        cursor = page.nextCursor
        if not cursor:
            return matches, pages, True

    return matches, pages, False


def encode_multi_cursor(cursors: Mapping[ChainId, Optional[Cursor]]) -> Cursor:
    """Encode per-chain cursors (None = chain exhausted) into one token."""
    payload = json.dumps({str(chain_id): cursor for chain_id, cursor in cursors.items()}, sort_keys=True)
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_multi_cursor(token: Cursor) -> Dict[ChainId, Optional[Cursor]]:
    """Decode a token produced by ``encode_multi_cursor``.

    Raises:
        ValueError: If the token is not a multi-chain cursor.
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise ValueError(f"Invalid multi-chain cursor: {token!r}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Invalid multi-chain cursor: {token!r}")

    result: Dict[ChainId, Optional[Cursor]] = {}
    for chain_id, cursor in data.items():
        if cursor is not None and not isinstance(cursor, str):
            raise ValueError(f"Invalid cursor for chain {chain_id}: {cursor!r}")
        try:
            result[int(chain_id)] = cursor
        except ValueError as e:
            raise ValueError(f"Invalid chain id in cursor: {chain_id!r}") from e
    return result
