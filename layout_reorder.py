"""Drag-and-drop reorder engine for layout blocks.

Every function here is pure: it takes a block list and returns a new one,
never mutating its input. Gesture data comes straight from pointer events
and is often stale during fast drags, so nothing in this module raises on
bad input; unknown ids degrade to a no-op and unknown targets to an append.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List


Block = Dict[str, Any]

logger = logging.getLogger("layoutdesk.reorder")


@dataclass(frozen=True)
class DragGesture:
    dragged_id: str
    hover_id: str | None
    dragged_section: str
    hover_section: str

    @property
    def is_self_drop(self) -> bool:
        return bool(self.hover_id) and self.dragged_id == self.hover_id and self.dragged_section == self.hover_section


def renumber(blocks: List[Block]) -> List[Block]:
    """Assign dense per-section ``display_order`` values following list position."""
    counters: Dict[Any, int] = {}
    result: List[Block] = []
    for block in blocks:
        section = block.get("section")
        position = counters.get(section, 0)
        counters[section] = position + 1
        result.append({**block, "display_order": position})
    return result


def ordered(blocks: List[Block]) -> List[Block]:
    """Sort by ``display_order`` within each section; list position breaks ties."""
    ranked = sorted(enumerate(blocks), key=lambda item: (_order_of(item[1]), item[0]))
    return renumber([b for _, b in ranked])


def _order_of(block: Block) -> int:
    value = block.get("display_order")
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def _index_of(blocks: List[Block], block_id: str | None) -> int:
    if not block_id:
        return -1
    for idx, block in enumerate(blocks):
        if block.get("id") == block_id:
            return idx
    return -1


def _last_index_in_section(blocks: List[Block], section: str) -> int:
    last = -1
    for idx, block in enumerate(blocks):
        if block.get("section") == section:
            last = idx
    return last


def move_block(blocks: List[Block], gesture: DragGesture) -> List[Block]:
    """Move the dragged block into ``hover_section``, above ``hover_id`` when given.

    The dragged block is inserted immediately before the hover block when the
    hover block is found in the target section, otherwise after the last block
    of the target section, otherwise at the end of the list.
    """
    if gesture.is_self_drop:
        return [dict(b) for b in blocks]
    dragged_idx = _index_of(blocks, gesture.dragged_id)
    if dragged_idx < 0:
        logger.debug("reorder_stale_drag dragged_id=%s", gesture.dragged_id)
        return [dict(b) for b in blocks]
    target_section = gesture.hover_section
    if not isinstance(target_section, str) or not target_section:
        target_section = blocks[dragged_idx].get("section")

    moved = {**blocks[dragged_idx], "section": target_section}
    remaining = [dict(b) for idx, b in enumerate(blocks) if idx != dragged_idx]

    insert_idx = _index_of(remaining, gesture.hover_id)
    if insert_idx >= 0 and remaining[insert_idx].get("section") != target_section:
        # hover target left the section mid-drag; append instead of inserting before it
        logger.debug(
            "reorder_stale_hover hover_id=%s hover_section=%s",
            gesture.hover_id,
            target_section,
        )
        insert_idx = -1
    if insert_idx < 0:
        last_idx = _last_index_in_section(remaining, target_section)
        insert_idx = last_idx + 1 if last_idx >= 0 else len(remaining)
    remaining.insert(insert_idx, moved)
    return renumber(remaining)


def move(blocks: List[Block], dragged_id: str, hover_id: str | None, dragged_section: str, hover_section: str) -> List[Block]:
    return move_block(blocks, DragGesture(dragged_id, hover_id, dragged_section, hover_section))
