"""DB-backed layout and metadata stores."""

from __future__ import annotations

import copy
import json
import logging
import uuid

import psycopg2

from app.db import execute, fetch_all, fetch_one, get_conn
from app.layout_validate import is_uuid, validate_save_records
from layout_model import DEFAULT_SECTION, WIDTH_HALF
from layout_reconcile import LayoutStoreError


logger = logging.getLogger("layoutdesk.db")

_BLOCK_COLUMNS = """
    id::text as id, table_name, block_type::text as block_type,
    field_id::text as field_id, related_list_id::text as related_list_id,
    label, section, display_order, width, created_at, updated_at
"""


def _deepcopy(value):
    return copy.deepcopy(value)


class DbLayoutStore:
    def fetch_layout_blocks(self, object_key: str) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                f"""
                select {_BLOCK_COLUMNS}
                from layout_blocks
                where table_name=%s and is_visible = true
                order by section, display_order
                """,
                [object_key],
                query_name="layout_blocks.list",
            )
            return [_deepcopy(r) for r in rows]

    def save_layout_blocks(self, object_key: str, records: list[dict]) -> list[dict]:
        """Replace every block of the object in one transaction and return the stored rows."""
        errors = validate_save_records(records)
        if errors:
            raise LayoutStoreError(errors[0]["message"], code=errors[0]["code"], detail={"errors": errors})
        try:
            with get_conn() as conn:
                execute(
                    conn,
                    "delete from layout_blocks where table_name=%s",
                    [object_key],
                    query_name="layout_blocks.delete_for_table",
                )
                saved = []
                for record in records:
                    block_id = record.get("id")
                    if not is_uuid(block_id):
                        block_id = str(uuid.uuid4())
                    row = fetch_one(
                        conn,
                        f"""
                        insert into layout_blocks
                          (id, table_name, block_type, field_id, related_list_id, label, section, display_order, width, is_visible)
                        values (%s,%s,%s,%s,%s,%s,%s,%s,%s,true)
                        returning {_BLOCK_COLUMNS}
                        """,
                        [
                            block_id,
                            object_key,
                            record["block_type"],
                            record.get("field_id"),
                            record.get("related_list_id"),
                            record.get("label") or "",
                            record.get("section") or DEFAULT_SECTION,
                            record["display_order"],
                            record.get("width") or WIDTH_HALF,
                        ],
                        query_name="layout_blocks.insert",
                    )
                    saved.append(row)
        except psycopg2.Error as exc:
            logger.warning("layout_blocks_save_failed table=%s error=%s", object_key, exc)
            raise LayoutStoreError(str(exc).strip() or "database error", code="LAYOUT_DB_ERROR") from exc
        saved.sort(key=lambda r: (r.get("section") or "", r.get("display_order") or 0))
        return [_deepcopy(r) for r in saved]


class DbMetadataStore:
    def list_fields(self, object_key: str) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select id::text as id, table_name, api_name, display_label, field_type,
                       is_required, is_nullable, default_value, display_order, section, width,
                       is_visible, is_system_field, reference_table, reference_display_field
                from field_metadata
                where table_name=%s
                order by display_order
                """,
                [object_key],
                query_name="field_metadata.list",
            )
            return [_deepcopy(r) for r in rows]

    def list_related_lists(self, object_key: str) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select id::text as id, parent_table, child_table, foreign_key_field, label,
                       display_columns, section, display_order, is_visible
                from related_list_metadata
                where parent_table=%s and is_visible = true
                order by section, display_order
                """,
                [object_key],
                query_name="related_list_metadata.list",
            )
        items = []
        for row in rows:
            columns = row.get("display_columns")
            if isinstance(columns, str):
                try:
                    row["display_columns"] = json.loads(columns)
                except ValueError:
                    row["display_columns"] = []
            items.append(_deepcopy(row))
        return items
