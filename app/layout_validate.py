"""Validation for layout save payloads."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List

from layout_model import BLOCK_FIELD, BLOCK_RELATED_LIST, BLOCK_TYPES, WIDTHS, is_temp_id


Issue = Dict[str, Any]


def _issue(code: str, message: str, path: str | None = None) -> Issue:
    return {"code": code, "message": message, "path": path}


def is_uuid(value: Any) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except Exception:
        return False


def _present(value: Any) -> bool:
    return value is not None and value != ""


def validate_save_record(record: Any, path: str) -> List[Issue]:
    if not isinstance(record, dict):
        return [_issue("BLOCK_INVALID", "block must be an object", path)]
    errors: List[Issue] = []
    block_id = record.get("id")
    if block_id is not None and (not isinstance(block_id, str) or is_temp_id(block_id) or not block_id.strip()):
        errors.append(_issue("BLOCK_ID_INVALID", "id must be null or a persisted block id", f"{path}.id"))
    block_type = record.get("block_type")
    if block_type not in BLOCK_TYPES:
        errors.append(_issue("BLOCK_TYPE_INVALID", f"block_type must be one of {', '.join(BLOCK_TYPES)}", f"{path}.block_type"))
    else:
        own, other = ("field_id", "related_list_id") if block_type == BLOCK_FIELD else ("related_list_id", "field_id")
        if not _present(record.get(own)):
            errors.append(_issue("BLOCK_REF_REQUIRED", f"{own} is required for {block_type} blocks", f"{path}.{own}"))
        if _present(record.get(other)):
            errors.append(_issue("BLOCK_REF_CONFLICT", f"{other} must be empty for {block_type} blocks", f"{path}.{other}"))
    section = record.get("section")
    if not isinstance(section, str) or not section.strip():
        errors.append(_issue("BLOCK_SECTION_REQUIRED", "section is required", f"{path}.section"))
    order = record.get("display_order")
    if not isinstance(order, int) or isinstance(order, bool) or order < 0:
        errors.append(_issue("BLOCK_ORDER_INVALID", "display_order must be a non-negative integer", f"{path}.display_order"))
    width = record.get("width")
    if width is not None and width not in WIDTHS:
        errors.append(_issue("BLOCK_WIDTH_INVALID", f"width must be one of {', '.join(WIDTHS)}", f"{path}.width"))
    label = record.get("label")
    if label is not None and not isinstance(label, str):
        errors.append(_issue("BLOCK_LABEL_INVALID", "label must be a string", f"{path}.label"))
    return errors


def validate_save_records(records: Any) -> List[Issue]:
    """Check a full save payload, including cross-block uniqueness."""
    if not isinstance(records, list):
        return [_issue("BLOCKS_INVALID", "blocks must be a list", "blocks")]
    errors: List[Issue] = []
    seen_ids: set[str] = set()
    seen_refs: set[tuple] = set()
    for idx, record in enumerate(records):
        path = f"blocks[{idx}]"
        record_errors = validate_save_record(record, path)
        errors.extend(record_errors)
        if record_errors:
            continue
        block_id = record.get("id")
        if block_id is not None:
            if block_id in seen_ids:
                errors.append(_issue("BLOCK_ID_DUPLICATE", f"id '{block_id}' appears more than once", f"{path}.id"))
            seen_ids.add(block_id)
        ref_field = "related_list_id" if record["block_type"] == BLOCK_RELATED_LIST else "field_id"
        ref = (record["block_type"], str(record[ref_field]))
        if ref in seen_refs:
            errors.append(_issue("BLOCK_REF_DUPLICATE", f"{ref_field} '{ref[1]}' is placed more than once", f"{path}.{ref_field}"))
        seen_refs.add(ref)
    return errors
