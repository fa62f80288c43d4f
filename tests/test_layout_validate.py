import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.layout_validate import validate_save_records


def _record(**overrides) -> dict:
    record = {
        "id": None,
        "block_type": "field",
        "field_id": "fld-1",
        "related_list_id": None,
        "label": "Name",
        "section": "details",
        "display_order": 0,
        "width": "half",
    }
    record.update(overrides)
    return record


class TestLayoutValidate(unittest.TestCase):
    def _codes(self, records) -> list:
        return [e["code"] for e in validate_save_records(records)]

    def test_valid_payload(self) -> None:
        records = [
            _record(),
            _record(id="b2", block_type="related_list", field_id=None, related_list_id="rl-1", width="full", display_order=1),
        ]
        self.assertEqual(validate_save_records(records), [])

    def test_payload_must_be_list(self) -> None:
        self.assertEqual(self._codes({"blocks": []}), ["BLOCKS_INVALID"])
        self.assertEqual(self._codes(["x"]), ["BLOCK_INVALID"])

    def test_record_rules(self) -> None:
        self.assertEqual(self._codes([_record(block_type="chart")]), ["BLOCK_TYPE_INVALID"])
        self.assertEqual(self._codes([_record(field_id=None)]), ["BLOCK_REF_REQUIRED"])
        self.assertEqual(self._codes([_record(related_list_id="rl-1")]), ["BLOCK_REF_CONFLICT"])
        self.assertEqual(self._codes([_record(section=" ")]), ["BLOCK_SECTION_REQUIRED"])
        self.assertEqual(self._codes([_record(display_order=-1)]), ["BLOCK_ORDER_INVALID"])
        self.assertEqual(self._codes([_record(display_order=True)]), ["BLOCK_ORDER_INVALID"])
        self.assertEqual(self._codes([_record(width="wide")]), ["BLOCK_WIDTH_INVALID"])
        self.assertEqual(self._codes([_record(id="temp-123")]), ["BLOCK_ID_INVALID"])

    def test_duplicates(self) -> None:
        records = [_record(id="b1"), _record(id="b1", field_id="fld-2", display_order=1)]
        self.assertEqual(self._codes(records), ["BLOCK_ID_DUPLICATE"])
        records = [_record(), _record(display_order=1)]
        self.assertEqual(self._codes(records), ["BLOCK_REF_DUPLICATE"])

    def test_error_paths(self) -> None:
        errors = validate_save_records([_record(), _record(field_id=None, display_order=1)])
        self.assertEqual(errors[0]["path"], "blocks[1].field_id")


if __name__ == "__main__":
    unittest.main()
