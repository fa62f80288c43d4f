"""In-memory layout state: placed blocks and the section registry."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List

from layout_reorder import ordered, renumber


Block = Dict[str, Any]

BLOCK_FIELD = "field"
BLOCK_RELATED_LIST = "related_list"
BLOCK_TYPES = (BLOCK_FIELD, BLOCK_RELATED_LIST)

WIDTH_HALF = "half"
WIDTH_FULL = "full"
WIDTHS = (WIDTH_HALF, WIDTH_FULL)

SECTION_FIELD = "field"
SECTION_RELATED = "related"
SECTION_KINDS = (SECTION_FIELD, SECTION_RELATED)

DEFAULT_SECTION = "details"
# Reserved names hold blocks like any other section but cannot be renamed or removed.
RESERVED_SECTIONS = (DEFAULT_SECTION, "basic", "system")

TEMP_ID_PREFIX = "temp-"

BLOCK_KEYS = ("id", "block_type", "field_id", "related_list_id", "label", "section", "display_order", "width")


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


def is_temp_id(block_id: Any) -> bool:
    return isinstance(block_id, str) and block_id.startswith(TEMP_ID_PREFIX)


def section_key(name: Any) -> str:
    if not isinstance(name, str):
        return ""
    return name.strip().lower()


def ref_key(block_type: str) -> str:
    return "related_list_id" if block_type == BLOCK_RELATED_LIST else "field_id"


def block_ref(block: Block) -> str | None:
    """Return the field or related-list id the block points at."""
    value = block.get(ref_key(block.get("block_type")))
    return str(value) if value is not None else None


def make_block(
    block_type: str,
    ref_id: str,
    label: str,
    section: str,
    display_order: int,
    width: str | None = None,
    block_id: str | None = None,
) -> Block:
    if block_type not in BLOCK_TYPES:
        raise ValueError(f"unknown block_type: {block_type}")
    if width not in WIDTHS:
        width = WIDTH_FULL if block_type == BLOCK_RELATED_LIST else WIDTH_HALF
    return {
        "id": block_id or new_temp_id(),
        "block_type": block_type,
        "field_id": ref_id if block_type == BLOCK_FIELD else None,
        "related_list_id": ref_id if block_type == BLOCK_RELATED_LIST else None,
        "label": label,
        "section": section_key(section) or DEFAULT_SECTION,
        "display_order": display_order,
        "width": width,
    }


def normalize_block(row: dict) -> Block:
    """Coerce a persisted row into a block, dropping server-only keys."""
    block = {key: copy.deepcopy(row.get(key)) for key in BLOCK_KEYS}
    if block["id"] is not None:
        block["id"] = str(block["id"])
    for key in ("field_id", "related_list_id"):
        if block[key] is not None:
            block[key] = str(block[key])
    block["section"] = section_key(block["section"]) or DEFAULT_SECTION
    try:
        block["display_order"] = int(block["display_order"])
    except (TypeError, ValueError):
        block["display_order"] = 0
    if block["width"] not in WIDTHS:
        block["width"] = WIDTH_FULL if block["block_type"] == BLOCK_RELATED_LIST else WIDTH_HALF
    if block["label"] is None:
        block["label"] = ""
    return block


class LayoutState:
    """Ordered block list plus the registry of sections those blocks live in.

    Blocks are kept in a single list; the position of a block in that list
    breaks ties between equal ``display_order`` values. Every mutation leaves
    ``display_order`` dense within each section.
    """

    def __init__(self, blocks: List[Block] | None = None, sections: List[dict] | None = None) -> None:
        self._sections: Dict[str, dict] = {}
        self._blocks: List[Block] = []
        self.register_section(DEFAULT_SECTION, SECTION_FIELD)
        for section in sections or []:
            self.register_section(section.get("name"), section.get("kind") or SECTION_FIELD)
        self.replace_blocks(blocks or [])

    @property
    def blocks(self) -> List[Block]:
        return copy.deepcopy(self._blocks)

    def get_block(self, block_id: str) -> Block | None:
        for block in self._blocks:
            if block.get("id") == block_id:
                return copy.deepcopy(block)
        return None

    def section_names(self) -> List[str]:
        return list(self._sections.keys())

    def sections(self) -> List[dict]:
        return [copy.deepcopy(s) for s in self._sections.values()]

    def has_section(self, name: str) -> bool:
        return section_key(name) in self._sections

    def register_section(self, name: str, kind: str = SECTION_FIELD) -> str:
        key = section_key(name)
        if not key:
            raise ValueError("section name required")
        if key not in self._sections:
            self._sections[key] = {"name": key, "kind": kind if kind in SECTION_KINDS else SECTION_FIELD}
        return key

    def list_blocks_by_section(self, section: str) -> List[Block]:
        key = section_key(section)
        members = [(idx, b) for idx, b in enumerate(self._blocks) if b.get("section") == key]
        members.sort(key=lambda item: (item[1].get("display_order", 0), item[0]))
        return [copy.deepcopy(b) for _, b in members]

    def add_block(self, block_type: str, ref: dict, section: str) -> Block:
        key = section_key(section)
        if key not in self._sections:
            raise KeyError("section not found")
        if block_type == BLOCK_FIELD:
            label = ref.get("display_label") or ref.get("api_name") or ""
            width = ref.get("width")
        else:
            label = ref.get("label") or ref.get("child_table") or ""
            width = WIDTH_FULL
        order = sum(1 for b in self._blocks if b.get("section") == key)
        block = make_block(block_type, str(ref.get("id")), label, key, order, width=width)
        self._blocks.append(block)
        return copy.deepcopy(block)

    def remove_block(self, block_id: str) -> bool:
        remaining = [b for b in self._blocks if b.get("id") != block_id]
        if len(remaining) == len(self._blocks):
            return False
        self._blocks = renumber(remaining)
        return True

    def set_blocks(self, blocks: List[Block]) -> None:
        """Install an already-ordered block list produced by the reorder engine."""
        for block in blocks:
            if block.get("section") not in self._sections:
                self.register_section(block.get("section"), _kind_for(block))
        self._blocks = renumber(blocks)

    def replace_blocks(self, blocks: List[Block]) -> None:
        """Replace every block, keeping registered sections that are now empty."""
        self.set_blocks(ordered([normalize_block(b) for b in blocks]))

    def rename_section(self, old: str, new: str) -> bool:
        old_key = section_key(old)
        new_key = section_key(new)
        if old_key in RESERVED_SECTIONS:
            return False
        if old_key not in self._sections or not new_key or new_key in self._sections:
            return False
        sections: Dict[str, dict] = {}
        for key, value in self._sections.items():
            if key == old_key:
                sections[new_key] = {**value, "name": new_key}
            else:
                sections[key] = value
        blocks = [{**b, "section": new_key} if b.get("section") == old_key else b for b in self._blocks]
        self._sections = sections
        self._blocks = blocks
        return True

    def remove_section(self, name: str, fallback: str = DEFAULT_SECTION) -> bool:
        key = section_key(name)
        fallback_key = section_key(fallback)
        if key == DEFAULT_SECTION or key not in self._sections or key == fallback_key:
            return False
        if fallback_key not in self._sections:
            return False
        stay = [b for b in self._blocks if b.get("section") != key]
        moved = [{**b, "section": fallback_key} for b in self.list_blocks_by_section(key)]
        self._blocks = renumber(stay + moved)
        del self._sections[key]
        return True


def _kind_for(block: Block) -> str:
    return SECTION_RELATED if block.get("block_type") == BLOCK_RELATED_LIST else SECTION_FIELD
