"""Save layout blocks through a persistence collaborator and adopt the server's result."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol

from layout_model import BLOCK_FIELD, BLOCK_RELATED_LIST, Block, is_temp_id, normalize_block
from layout_reorder import ordered


logger = logging.getLogger("layoutdesk.reconcile")

STATUS_IDLE = "idle"
STATUS_SAVING = "saving"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass
class LayoutStoreError(Exception):
    message: str
    code: str = "LAYOUT_STORE_ERROR"
    detail: dict | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message}"


class LayoutStore(Protocol):
    def fetch_layout_blocks(self, object_key: str) -> List[dict]: ...

    def save_layout_blocks(self, object_key: str, records: List[dict]) -> List[dict] | None: ...


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Dict[str, Any]:
    return {"code": code, "message": message, "path": path, "detail": detail}


def to_save_record(block: Block) -> dict:
    """Build the wire record for one block; temporary ids are sent as creates."""
    block_type = block.get("block_type")
    block_id = block.get("id")
    return {
        "id": None if block_id is None or is_temp_id(block_id) else block_id,
        "block_type": block_type,
        "field_id": block.get("field_id") if block_type == BLOCK_FIELD else None,
        "related_list_id": block.get("related_list_id") if block_type == BLOCK_RELATED_LIST else None,
        "label": block.get("label"),
        "section": block.get("section"),
        "display_order": block.get("display_order"),
        "width": block.get("width"),
    }


def build_save_request(blocks: List[Block]) -> List[dict]:
    return [to_save_record(b) for b in blocks]


def _adopt(rows: Any) -> List[Block]:
    if not isinstance(rows, list):
        return []
    return ordered([normalize_block(r) for r in rows if isinstance(r, dict)])


def _needs_refetch(saved: Any) -> bool:
    if not isinstance(saved, list):
        return True
    for row in saved:
        if not isinstance(row, dict) or not row.get("id") or is_temp_id(row.get("id")):
            return True
    return False


class LayoutReconciler:
    """Per-object save/fetch against an injected store.

    ``save`` moves ``status`` through idle -> saving -> idle and records
    success or failure in ``last_status``. State is only ever replaced
    wholesale by what the store returns, which is how temporary ids retire.
    """

    def __init__(self, store: LayoutStore) -> None:
        self.store = store
        self.status = STATUS_IDLE
        self.last_status: str | None = None
        self.last_error: Dict[str, Any] | None = None

    @property
    def is_saving(self) -> bool:
        return self.status == STATUS_SAVING

    def fetch(self, object_key: str) -> List[Block]:
        rows = self.store.fetch_layout_blocks(object_key)
        return _adopt(rows)

    def save(self, object_key: str, blocks: List[Block]) -> dict:
        if self.is_saving:
            return {
                "ok": False,
                "blocks": None,
                "refetched": False,
                "errors": [_issue("LAYOUT_SAVE_IN_PROGRESS", "A save for this layout is already running", "object_key")],
                "warnings": [],
            }
        self.status = STATUS_SAVING
        try:
            result = self._save(object_key, blocks)
        finally:
            self.status = STATUS_IDLE
        self.last_status = STATUS_SUCCESS if result["ok"] else STATUS_FAILED
        self.last_error = None if result["ok"] else result["errors"][0]
        return result

    def _save(self, object_key: str, blocks: List[Block]) -> dict:
        records = build_save_request(blocks)
        creates = sum(1 for r in records if r["id"] is None)
        logger.info("layout_save object=%s blocks=%s creates=%s", object_key, len(records), creates)
        try:
            saved = self.store.save_layout_blocks(object_key, records)
        except Exception as exc:
            logger.warning("layout_save_failed object=%s error=%s", object_key, exc)
            code = getattr(exc, "code", None) or "LAYOUT_SAVE_FAILED"
            message = getattr(exc, "message", None) or str(exc) or "An unexpected error occurred"
            return {
                "ok": False,
                "blocks": None,
                "refetched": False,
                "errors": [_issue(code, f"Error saving layout: {message}", "blocks", getattr(exc, "detail", None))],
                "warnings": [],
            }

        refetched = False
        if _needs_refetch(saved):
            # local blocks may still hold unresolved temporary ids; only the store knows the truth
            logger.info("layout_save_refetch object=%s", object_key)
            refetched = True
            try:
                saved = self.store.fetch_layout_blocks(object_key)
            except Exception as exc:
                logger.warning("layout_refetch_failed object=%s error=%s", object_key, exc)
                return {
                    "ok": False,
                    "blocks": None,
                    "refetched": True,
                    "errors": [_issue("LAYOUT_REFETCH_FAILED", f"Layout saved but reloading it failed: {exc}", "blocks")],
                    "warnings": [],
                }
        adopted = _adopt(saved)
        return {"ok": True, "blocks": adopted, "refetched": refetched, "errors": [], "warnings": []}
