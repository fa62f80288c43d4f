"""Create, rename and remove layout sections with validation."""

from __future__ import annotations

from typing import Any, Dict, List

from layout_model import (
    DEFAULT_SECTION,
    RESERVED_SECTIONS,
    SECTION_FIELD,
    SECTION_KINDS,
    LayoutState,
    section_key,
)


Issue = Dict[str, Any]


def _issue(code: str, message: str, path: str | None = None) -> Issue:
    return {"code": code, "message": message, "path": path}


def _result(ok: bool, section: str | None, errors: List[Issue] | None = None, warnings: List[Issue] | None = None) -> dict:
    return {"ok": ok, "section": section, "errors": errors or [], "warnings": warnings or []}


def _fail(code: str, message: str, path: str) -> dict:
    return _result(False, None, [_issue(code, message, path)])


def create_section(state: LayoutState, name: str, kind: str = SECTION_FIELD) -> dict:
    key = section_key(name)
    if not key:
        return _fail("SECTION_NAME_REQUIRED", "Section name is required", "name")
    if kind not in SECTION_KINDS:
        return _fail("SECTION_KIND_INVALID", f"Section kind must be one of {', '.join(SECTION_KINDS)}", "kind")
    if state.has_section(key):
        return _fail("SECTION_EXISTS", f"Section '{key}' already exists", "name")
    state.register_section(key, kind)
    return _result(True, key)


def rename_section(state: LayoutState, old: str, new: str) -> dict:
    old_key = section_key(old)
    new_key = section_key(new)
    if not state.has_section(old_key):
        return _fail("SECTION_NOT_FOUND", f"Section '{old_key}' not found", "old")
    if old_key in RESERVED_SECTIONS:
        return _fail("SECTION_PROTECTED", f"Section '{old_key}' cannot be renamed", "old")
    if not new_key:
        return _fail("SECTION_NAME_REQUIRED", "Section name is required", "new")
    if new_key == old_key:
        return _result(True, old_key)
    if state.has_section(new_key):
        return _fail("SECTION_EXISTS", f"Section '{new_key}' already exists", "new")
    state.rename_section(old_key, new_key)
    return _result(True, new_key)


def remove_section(state: LayoutState, name: str) -> dict:
    """Drop a section after moving its blocks to the end of the default section."""
    key = section_key(name)
    if key in RESERVED_SECTIONS:
        return _fail("SECTION_PROTECTED", f"Section '{key}' cannot be removed", "name")
    if not state.has_section(key):
        return _fail("SECTION_NOT_FOUND", f"Section '{key}' not found", "name")
    moved = len(state.list_blocks_by_section(key))
    state.remove_section(key, DEFAULT_SECTION)
    warnings = []
    if moved:
        warnings.append(_issue("SECTION_BLOCKS_MOVED", f"{moved} block(s) moved to '{DEFAULT_SECTION}'", "name"))
    return _result(True, DEFAULT_SECTION, warnings=warnings)
