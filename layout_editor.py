"""Editing session for one object's record-detail page layout.

The admin UI drives this class: pointer events become ``move``/``handle_drop``
calls, the pool panel reads ``pool``, and the save button calls ``save``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import layout_sections
from layout_model import (
    BLOCK_FIELD,
    BLOCK_RELATED_LIST,
    DEFAULT_SECTION,
    RESERVED_SECTIONS,
    SECTION_FIELD,
    Block,
    LayoutState,
    section_key,
)
from layout_pool import available_fields, available_related_lists
from layout_reconcile import LayoutReconciler, LayoutStore
from layout_reorder import DragGesture, move_block
from layoutkit.fingerprint import layout_fingerprint


logger = logging.getLogger("layoutdesk.editor")

POOL_SECTION = "pool"
DROP_FIELD = "field"
DROP_RELATED_LIST = "relatedList"
DROP_LAYOUT_BLOCK = "layoutBlock"


def _issue(code: str, message: str, path: str | None = None) -> Dict[str, Any]:
    return {"code": code, "message": message, "path": path}


def _fail(code: str, message: str, path: str | None = None) -> dict:
    return {"ok": False, "block": None, "errors": [_issue(code, message, path)], "warnings": []}


class LayoutEditor:
    def __init__(
        self,
        object_key: str,
        store: LayoutStore,
        fields: List[dict] | None = None,
        related_lists: List[dict] | None = None,
    ) -> None:
        self.object_key = object_key
        self.reconciler = LayoutReconciler(store)
        self.state = LayoutState()
        self.fields: List[dict] = list(fields or [])
        self.related_lists: List[dict] = list(related_lists or [])
        self._saved_fingerprint = layout_fingerprint([])

    # -- loading and metadata -------------------------------------------------

    def load(self) -> List[Block]:
        blocks = self.reconciler.fetch(self.object_key)
        self.state = LayoutState(blocks)
        self._saved_fingerprint = layout_fingerprint(self.state.blocks)
        logger.info("layout_loaded object=%s blocks=%s sections=%s", self.object_key, len(blocks), len(self.state.section_names()))
        return self.state.blocks

    @property
    def blocks(self) -> List[Block]:
        return self.state.blocks

    @property
    def is_saving(self) -> bool:
        return self.reconciler.is_saving

    @property
    def is_dirty(self) -> bool:
        return layout_fingerprint(self.state.blocks) != self._saved_fingerprint

    def sections(self) -> List[dict]:
        """Sections in render order: the default section first, then the rest as created."""
        items = []
        for section in self.state.sections():
            name = section["name"]
            items.append(
                {
                    "name": name,
                    "kind": section["kind"],
                    "protected": name in RESERVED_SECTIONS,
                    "removable": name not in RESERVED_SECTIONS,
                    "blocks": self.state.list_blocks_by_section(name),
                }
            )
        items.sort(key=lambda s: 0 if s["name"] == DEFAULT_SECTION else 1)
        return items

    def pool(self, query: str | None = None) -> dict:
        placed = self.state.blocks
        return {
            "fields": available_fields(self.fields, placed, query),
            "related_lists": available_related_lists(self.related_lists, placed, query),
        }

    def snapshot(self, query: str | None = None) -> dict:
        return {
            "object_key": self.object_key,
            "sections": self.sections(),
            "pool": self.pool(query),
            "dirty": self.is_dirty,
            "saving": self.is_saving,
        }

    # -- placement ------------------------------------------------------------

    def _place(self, block_type: str, ref_id: str, section: str) -> dict:
        catalog = self.fields if block_type == BLOCK_FIELD else self.related_lists
        ref = next((item for item in catalog if str(item.get("id")) == str(ref_id)), None)
        if ref is None:
            return _fail("LAYOUT_REF_NOT_FOUND", f"No {block_type} with id '{ref_id}'", "ref_id")
        available = self.pool()["fields" if block_type == BLOCK_FIELD else "related_lists"]
        if not any(str(item.get("id")) == str(ref_id) for item in available):
            return _fail("LAYOUT_ALREADY_PLACED", f"'{ref_id}' is already on the layout", "ref_id")
        if not self.state.has_section(section):
            return _fail("SECTION_NOT_FOUND", f"Section '{section_key(section)}' not found", "section")
        block = self.state.add_block(block_type, ref, section)
        return {"ok": True, "block": block, "errors": [], "warnings": []}

    def place_field(self, field_id: str, section: str = DEFAULT_SECTION) -> dict:
        return self._place(BLOCK_FIELD, field_id, section)

    def place_related_list(self, related_list_id: str, section: str = DEFAULT_SECTION) -> dict:
        return self._place(BLOCK_RELATED_LIST, related_list_id, section)

    def remove_block(self, block_id: str) -> bool:
        """Take a block off the layout; its field or related list returns to the pool."""
        return self.state.remove_block(block_id)

    # -- drag and drop --------------------------------------------------------

    def move(self, dragged_id: str, hover_id: str | None, dragged_section: str, hover_section: str) -> bool:
        target = section_key(hover_section)
        if not self.state.has_section(target):
            logger.debug("layout_move_unknown_section object=%s section=%s", self.object_key, hover_section)
            return False
        before = self.state.blocks
        gesture = DragGesture(dragged_id, hover_id, section_key(dragged_section), target)
        after = move_block(before, gesture)
        if after == before:
            return False
        self.state.set_blocks(after)
        return True

    def handle_drop(self, item: dict, target_section: str, hover_id: str | None = None) -> dict:
        """Apply a drop event payload from the UI.

        Pool items (``section == "pool"``) carry a ``field`` or ``relatedList``
        and become new blocks; layout blocks carry their ``id`` and ``section``
        and become moves.
        """
        if not isinstance(item, dict):
            return {"ok": False, "changed": False, "block": None, "errors": [], "warnings": []}
        if item.get("section") == POOL_SECTION:
            if item.get("type") == DROP_FIELD and isinstance(item.get("field"), dict):
                result = self.place_field(item["field"].get("id"), target_section)
            elif item.get("type") == DROP_RELATED_LIST and isinstance(item.get("relatedList"), dict):
                result = self.place_related_list(item["relatedList"].get("id"), target_section)
            else:
                return {"ok": False, "changed": False, "block": None, "errors": [], "warnings": []}
            return {**result, "changed": result["ok"]}
        changed = self.move(item.get("id"), hover_id, item.get("section") or "", target_section)
        return {"ok": True, "changed": changed, "block": self.state.get_block(item.get("id")), "errors": [], "warnings": []}

    # -- sections -------------------------------------------------------------

    def create_section(self, name: str, kind: str = SECTION_FIELD) -> dict:
        return layout_sections.create_section(self.state, name, kind)

    def rename_section(self, old: str, new: str) -> dict:
        return layout_sections.rename_section(self.state, old, new)

    def remove_section(self, name: str) -> dict:
        return layout_sections.remove_section(self.state, name)

    # -- persistence ----------------------------------------------------------

    def save(self) -> dict:
        result = self.reconciler.save(self.object_key, self.state.blocks)
        if result["ok"]:
            self.state.replace_blocks(result["blocks"])
            self._saved_fingerprint = layout_fingerprint(self.state.blocks)
        return result
