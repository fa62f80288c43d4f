import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from layout_model import make_block
from layout_pool import available_fields, available_related_lists, placed_refs


FIELDS = [
    {"id": "f1", "api_name": "first_name", "display_label": "First Name"},
    {"id": "f2", "api_name": "last_name", "display_label": "Last Name"},
    {"id": "f3", "api_name": "email", "display_label": "Email Address"},
]
RELATED = [
    {"id": "r1", "label": "Invoices", "child_table": "billing"},
    {"id": "r2", "label": "Partners", "child_table": "channel_partners"},
]


class TestPool(unittest.TestCase):
    def test_placed_fields_are_excluded(self) -> None:
        placed = [make_block("field", "f2", "Last Name", "details", 0, block_id="b1")]
        self.assertEqual([f["id"] for f in available_fields(FIELDS, placed)], ["f1", "f3"])

    def test_block_type_is_respected(self) -> None:
        # a related-list block that happens to share an id does not hide a field
        placed = [make_block("related_list", "f1", "Odd", "details", 0, block_id="b1")]
        self.assertEqual(len(available_fields(FIELDS, placed)), 3)
        self.assertEqual(placed_refs(placed, "related_list"), {"f1"})

    def test_related_lists(self) -> None:
        placed = [make_block("related_list", "r1", "Invoices", "details", 0, block_id="b1")]
        self.assertEqual([r["id"] for r in available_related_lists(RELATED, placed)], ["r2"])

    def test_query_matches_label_and_api_name(self) -> None:
        self.assertEqual([f["id"] for f in available_fields(FIELDS, [], "NAME")], ["f1", "f2"])
        self.assertEqual([f["id"] for f in available_fields(FIELDS, [], "email")], ["f3"])
        self.assertEqual([r["id"] for r in available_related_lists(RELATED, [], "partner")], ["r2"])

    def test_query_applies_after_placement(self) -> None:
        placed = [make_block("field", "f1", "First Name", "details", 0, block_id="b1")]
        self.assertEqual([f["id"] for f in available_fields(FIELDS, placed, "name")], ["f2"])

    def test_blank_query_and_empty_inputs(self) -> None:
        self.assertEqual(len(available_fields(FIELDS, [], "   ")), 3)
        self.assertEqual(available_fields([], []), [])
        self.assertEqual(available_related_lists(None, None), [])

    def test_every_placed_ref_is_absent(self) -> None:
        placed = [
            make_block("field", f["id"], f["display_label"], "details", idx, block_id=f"b{idx}")
            for idx, f in enumerate(FIELDS[:2])
        ]
        available_ids = {f["id"] for f in available_fields(FIELDS, placed)}
        for block in placed:
            self.assertNotIn(block["field_id"], available_ids)


if __name__ == "__main__":
    unittest.main()
