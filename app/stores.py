"""In-memory layout and metadata stores."""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Dict, List

from app.layout_validate import validate_save_records
from layout_model import DEFAULT_SECTION, WIDTH_FULL, WIDTH_HALF
from layout_reconcile import LayoutStoreError


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _sort_rows(rows: List[dict]) -> List[dict]:
    return sorted(rows, key=lambda r: (r.get("section") or "", r.get("display_order") or 0))


class MemoryLayoutStore:
    """Layout blocks per object, saved by replacing the whole set.

    Records without an id are inserted with a fresh uuid; records with an id
    keep it and their ``created_at``.
    """

    def __init__(self) -> None:
        self._blocks: Dict[str, List[dict]] = {}

    def fetch_layout_blocks(self, object_key: str) -> list[dict]:
        return [copy.deepcopy(r) for r in _sort_rows(self._blocks.get(object_key, []))]

    def save_layout_blocks(self, object_key: str, records: list[dict]) -> list[dict]:
        errors = validate_save_records(records)
        if errors:
            raise LayoutStoreError(errors[0]["message"], code=errors[0]["code"], detail={"errors": errors})
        now = _now()
        existing = {r["id"]: r for r in self._blocks.get(object_key, [])}
        rows: List[dict] = []
        for record in records:
            block_id = record.get("id") or str(uuid.uuid4())
            previous = existing.get(block_id)
            rows.append(
                {
                    "id": block_id,
                    "table_name": object_key,
                    "block_type": record["block_type"],
                    "field_id": record.get("field_id"),
                    "related_list_id": record.get("related_list_id"),
                    "label": record.get("label") or "",
                    "section": record.get("section") or DEFAULT_SECTION,
                    "display_order": record["display_order"],
                    "width": record.get("width") or WIDTH_HALF,
                    "created_at": previous.get("created_at") if previous else now,
                    "updated_at": now,
                }
            )
        self._blocks[object_key] = rows
        return self.fetch_layout_blocks(object_key)


class MemoryMetadataStore:
    """Field and related-list metadata the layout editor places into sections."""

    def __init__(self) -> None:
        self._fields: Dict[str, Dict[str, dict]] = {}
        self._related_lists: Dict[str, Dict[str, dict]] = {}

    def list_fields(self, object_key: str) -> list[dict]:
        items = list(self._fields.get(object_key, {}).values())
        items.sort(key=lambda f: (f.get("display_order") or 0, f.get("api_name") or ""))
        return [copy.deepcopy(f) for f in items]

    def list_related_lists(self, object_key: str) -> list[dict]:
        items = list(self._related_lists.get(object_key, {}).values())
        items.sort(key=lambda r: (r.get("display_order") or 0, r.get("label") or ""))
        return [copy.deepcopy(r) for r in items]

    def upsert_field(self, object_key: str, field: dict) -> dict:
        record = copy.deepcopy(field)
        record["id"] = str(record.get("id") or uuid.uuid4())
        record["table_name"] = object_key
        record.setdefault("api_name", record["id"])
        record.setdefault("display_label", record["api_name"])
        record.setdefault("field_type", "text")
        record.setdefault("width", WIDTH_HALF)
        record.setdefault("display_order", len(self._fields.get(object_key, {})))
        self._fields.setdefault(object_key, {})[record["id"]] = record
        return copy.deepcopy(record)

    def upsert_related_list(self, object_key: str, related_list: dict) -> dict:
        record = copy.deepcopy(related_list)
        record["id"] = str(record.get("id") or uuid.uuid4())
        record["parent_table"] = object_key
        record.setdefault("child_table", "")
        record.setdefault("foreign_key_field", "")
        record.setdefault("label", record["child_table"])
        record.setdefault("display_columns", ["id", "name"])
        record.setdefault("width", WIDTH_FULL)
        record.setdefault("display_order", len(self._related_lists.get(object_key, {})))
        self._related_lists.setdefault(object_key, {})[record["id"]] = record
        return copy.deepcopy(record)
