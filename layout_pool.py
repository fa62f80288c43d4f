"""Pool of fields and related lists not yet placed on a layout."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Set

from layout_model import BLOCK_FIELD, BLOCK_RELATED_LIST, block_ref


FIELD_SEARCH_KEYS = ("display_label", "api_name")
RELATED_LIST_SEARCH_KEYS = ("label", "child_table")


def placed_refs(placed_blocks: Iterable[dict], block_type: str) -> Set[str]:
    refs: Set[str] = set()
    for block in placed_blocks or []:
        if not isinstance(block, dict) or block.get("block_type") != block_type:
            continue
        ref = block_ref(block)
        if ref is not None:
            refs.add(ref)
    return refs


def matches_query(item: Dict[str, Any], query: str | None, keys: Iterable[str]) -> bool:
    if not isinstance(query, str) or not query.strip():
        return True
    needle = query.strip().lower()
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and needle in value.lower():
            return True
    return False


def _available(items: Iterable[dict], used: Set[str], query: str | None, keys: Iterable[str]) -> List[dict]:
    result = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        if str(item.get("id")) in used:
            continue
        if matches_query(item, query, keys):
            result.append(item)
    return result


def available_fields(all_fields: Iterable[dict], placed_blocks: Iterable[dict], query: str | None = None) -> List[dict]:
    """Fields with no block on the layout, optionally narrowed by a search string."""
    used = placed_refs(placed_blocks, BLOCK_FIELD)
    return _available(all_fields, used, query, FIELD_SEARCH_KEYS)


def available_related_lists(
    all_related_lists: Iterable[dict],
    placed_blocks: Iterable[dict],
    query: str | None = None,
) -> List[dict]:
    used = placed_refs(placed_blocks, BLOCK_RELATED_LIST)
    return _available(all_related_lists, used, query, RELATED_LIST_SEARCH_KEYS)
