import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from layout_model import is_temp_id, make_block
from layout_reconcile import (
    STATUS_FAILED,
    STATUS_IDLE,
    STATUS_SUCCESS,
    LayoutReconciler,
    LayoutStoreError,
    build_save_request,
    to_save_record,
)


class FakeStore:
    def __init__(self, save_response=None, fetch_response=None, error: Exception | None = None) -> None:
        self.save_response = save_response
        self.fetch_response = fetch_response or []
        self.error = error
        self.saved: list = []
        self.fetches = 0

    def fetch_layout_blocks(self, object_key: str) -> list[dict]:
        self.fetches += 1
        return [dict(r) if isinstance(r, dict) else r for r in self.fetch_response]

    def save_layout_blocks(self, object_key: str, records: list[dict]):
        self.saved.append((object_key, records))
        if self.error is not None:
            raise self.error
        return self.save_response


def _server_row(block_id: str, field_id: str, order: int = 0, section: str = "details") -> dict:
    return {
        "id": block_id,
        "table_name": "clients",
        "block_type": "field",
        "field_id": field_id,
        "related_list_id": None,
        "label": field_id.upper(),
        "section": section,
        "display_order": order,
        "width": "half",
        "created_at": "2026-10-01T00:00:00Z",
    }


class TestSaveRecords(unittest.TestCase):
    def test_temp_id_becomes_create(self) -> None:
        block = make_block("field", "f1", "Name", "details", 0)
        record = to_save_record(block)
        self.assertIsNone(record["id"])
        self.assertEqual(record["field_id"], "f1")
        self.assertIsNone(record["related_list_id"])

    def test_durable_id_is_update(self) -> None:
        block = make_block("related_list", "r1", "Invoices", "billing", 2, block_id="srv-9")
        record = to_save_record(block)
        self.assertEqual(record["id"], "srv-9")
        self.assertIsNone(record["field_id"])
        self.assertEqual(record["related_list_id"], "r1")
        self.assertEqual(
            set(record),
            {"id", "block_type", "field_id", "related_list_id", "label", "section", "display_order", "width"},
        )

    def test_mismatched_ref_is_not_sent(self) -> None:
        block = make_block("field", "f1", "Name", "details", 0)
        block["related_list_id"] = "stray"
        self.assertIsNone(build_save_request([block])[0]["related_list_id"])


class TestReconciler(unittest.TestCase):
    def test_save_replaces_temp_ids(self) -> None:
        blocks = [make_block("field", "f1", "F1", "details", 0, block_id="temp-abc")]
        store = FakeStore(save_response=[_server_row("srv-1", "f1")])
        reconciler = LayoutReconciler(store)
        result = reconciler.save("clients", blocks)
        self.assertTrue(result["ok"])
        ids = [b["id"] for b in result["blocks"]]
        self.assertEqual(ids, ["srv-1"])
        self.assertFalse(any(is_temp_id(i) for i in ids))
        self.assertIsNone(store.saved[0][1][0]["id"])
        self.assertEqual(reconciler.last_status, STATUS_SUCCESS)
        self.assertEqual(reconciler.status, STATUS_IDLE)

    def test_missing_body_triggers_refetch(self) -> None:
        store = FakeStore(save_response=None, fetch_response=[_server_row("srv-2", "f1")])
        result = LayoutReconciler(store).save("clients", [make_block("field", "f1", "F1", "details", 0)])
        self.assertTrue(result["ok"])
        self.assertTrue(result["refetched"])
        self.assertEqual(store.fetches, 1)
        self.assertEqual([b["id"] for b in result["blocks"]], ["srv-2"])

    def test_temp_ids_in_response_trigger_refetch(self) -> None:
        store = FakeStore(save_response=[_server_row("temp-1", "f1")], fetch_response=[_server_row("srv-3", "f1")])
        result = LayoutReconciler(store).save("clients", [make_block("field", "f1", "F1", "details", 0)])
        self.assertTrue(result["refetched"])
        self.assertEqual([b["id"] for b in result["blocks"]], ["srv-3"])

    def test_malformed_response_triggers_refetch(self) -> None:
        for response in (["junk"], [_server_row("srv-4", "f1"), 7], {"blocks": []}, "ok"):
            store = FakeStore(save_response=response, fetch_response=[_server_row("srv-5", "f1")])
            reconciler = LayoutReconciler(store)
            result = reconciler.save("clients", [make_block("field", "f1", "F1", "details", 0)])
            self.assertTrue(result["ok"])
            self.assertTrue(result["refetched"])
            self.assertEqual([b["id"] for b in result["blocks"]], ["srv-5"])
            self.assertEqual(reconciler.status, STATUS_IDLE)

    def test_fetch_skips_non_dict_rows(self) -> None:
        store = FakeStore(fetch_response=[_server_row("srv-6", "f1"), "junk", None])
        blocks = LayoutReconciler(store).fetch("clients")
        self.assertEqual([b["id"] for b in blocks], ["srv-6"])

    def test_failure_surfaces_message(self) -> None:
        store = FakeStore(error=LayoutStoreError("connection refused", code="LAYOUT_HTTP_ERROR"))
        reconciler = LayoutReconciler(store)
        result = reconciler.save("clients", [make_block("field", "f1", "F1", "details", 0)])
        self.assertFalse(result["ok"])
        self.assertIsNone(result["blocks"])
        self.assertEqual(result["errors"][0]["code"], "LAYOUT_HTTP_ERROR")
        self.assertIn("connection refused", result["errors"][0]["message"])
        self.assertEqual(reconciler.last_status, STATUS_FAILED)
        self.assertEqual(reconciler.status, STATUS_IDLE)

    def test_unexpected_exception_is_reported(self) -> None:
        store = FakeStore(error=RuntimeError("boom"))
        result = LayoutReconciler(store).save("clients", [])
        self.assertEqual(result["errors"][0]["code"], "LAYOUT_SAVE_FAILED")
        self.assertIn("boom", result["errors"][0]["message"])

    def test_refetch_failure(self) -> None:
        class BrokenFetch(FakeStore):
            def fetch_layout_blocks(self, object_key: str) -> list[dict]:
                raise RuntimeError("down")

        result = LayoutReconciler(BrokenFetch(save_response=None)).save("clients", [])
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["code"], "LAYOUT_REFETCH_FAILED")

    def test_second_save_while_saving_is_rejected(self) -> None:
        outcomes = []

        class Reentrant(FakeStore):
            def save_layout_blocks(self, object_key, records):
                outcomes.append(reconciler.save(object_key, []))
                return []

        reconciler = LayoutReconciler(Reentrant())
        result = reconciler.save("clients", [])
        self.assertTrue(result["ok"])
        self.assertEqual(outcomes[0]["errors"][0]["code"], "LAYOUT_SAVE_IN_PROGRESS")

    def test_fetch_orders_rows(self) -> None:
        store = FakeStore(fetch_response=[_server_row("b", "f2", 1), _server_row("a", "f1", 0)])
        blocks = LayoutReconciler(store).fetch("clients")
        self.assertEqual([b["id"] for b in blocks], ["a", "b"])
        self.assertNotIn("table_name", blocks[0])


if __name__ == "__main__":
    unittest.main()
