import unittest

from treeops.db import InMemoryDbClient, RecordNotFoundError, SqlDbClient


class DocumentStoreContract:
    """Behaviour shared by every DbClient implementation."""

    def make_client(self):
        raise NotImplementedError

    def setUp(self):
        self.db = self.make_client()

    def test_insert_assigns_system_fields(self):
        doc_id = self.db.insert("leads", {"customer_name": "Ann", "id": "ignored"})
        doc = self.db.get("leads", doc_id)
        self.assertEqual(doc["id"], doc_id)
        self.assertEqual(doc["customer_name"], "Ann")
        self.assertIsInstance(doc["creation_time"], int)

    def test_get_is_scoped_by_table(self):
        doc_id = self.db.insert("leads", {"x": 1})
        self.assertIsNone(self.db.get("employees", doc_id))
        self.assertIsNone(self.db.get("leads", "missing"))

    def test_patch_merges_and_unsets(self):
        doc_id = self.db.insert("equipment", {"status": "in_use", "assigned_to_work_order_id": "wo"})
        patched = self.db.patch(
            "equipment",
            doc_id,
            {"status": "available", "creation_time": 0},
            unset=("assigned_to_work_order_id",),
        )
        self.assertEqual(patched["status"], "available")
        self.assertNotIn("assigned_to_work_order_id", patched)
        self.assertNotEqual(patched["creation_time"], 0)
        self.assertEqual(self.db.get("equipment", doc_id), patched)

    def test_patch_missing_raises(self):
        with self.assertRaises(RecordNotFoundError) as ctx:
            self.db.patch("leads", "missing", {"status": "won"})
        self.assertEqual(ctx.exception.table, "leads")
        self.assertEqual(ctx.exception.doc_id, "missing")

    def test_query_order_index_where_limit(self):
        ids = [self.db.insert("work_orders", {"n": n, "status": "pending" if n % 2 else "done"}) for n in range(5)]

        newest_first = [d["id"] for d in self.db.query("work_orders")]
        self.assertEqual(newest_first, list(reversed(ids)))
        oldest_first = [d["id"] for d in self.db.query("work_orders", order="asc")]
        self.assertEqual(oldest_first, ids)

        pending = self.db.query("work_orders", index=("status", "pending"))
        self.assertEqual([d["n"] for d in pending], [3, 1])

        big = self.db.query("work_orders", where=lambda d: d["n"] >= 2, limit=2)
        self.assertEqual([d["n"] for d in big], [4, 3])

    def test_returned_documents_are_copies(self):
        doc_id = self.db.insert("customers", {"tags": ["a"]})
        doc = self.db.get("customers", doc_id)
        doc["tags"].append("b")
        self.assertEqual(self.db.get("customers", doc_id)["tags"], ["a"])


class InMemoryDbClientTests(DocumentStoreContract, unittest.TestCase):
    def make_client(self):
        return InMemoryDbClient()

    def test_reset_clears_tables(self):
        self.db.insert("leads", {"x": 1})
        self.db.reset()
        self.assertEqual(self.db.query("leads"), [])


class SqlDbClientTests(DocumentStoreContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client logic.
    """

    def make_client(self):
        return SqlDbClient("sqlite+pysqlite:///:memory:")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlDbClient("")


if __name__ == "__main__":
    unittest.main()
