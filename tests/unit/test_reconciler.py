import unittest
from datetime import date, datetime, timezone

from portfolio_admin.core.reconciler import (
    RefetchRequired,
    build_collection,
    entity_id,
    parse_timestamp,
    reconcile_create,
    reconcile_delete,
    reconcile_update,
)


class TestParseTimestamp(unittest.TestCase):
    def test_formats(self):
        expected = datetime(2023, 6, 1, tzinfo=timezone.utc).timestamp()
        self.assertEqual(parse_timestamp("2023-06-01T00:00:00.000Z"), expected)
        self.assertEqual(parse_timestamp("2023-06"), expected)
        self.assertEqual(parse_timestamp(date(2023, 6, 1)), expected)
        self.assertEqual(parse_timestamp(expected * 1000), expected)

    def test_missing_or_invalid(self):
        for value in (None, "", "not a date", True, object()):
            self.assertIsNone(parse_timestamp(value))


class TestExperienceOrdering(unittest.TestCase):
    def test_insert_sorted_by_start_date(self):
        collection = build_collection("experience", [
            {"_id": "a", "startDate": "2023-01"},
            {"_id": "b", "startDate": "2024-06"},
        ])
        self.assertEqual(collection.ids(), ["b", "a"])

        updated = reconcile_create(collection, {"_id": "c", "startDate": "2023-06"})
        self.assertEqual(updated.ids(), ["b", "c", "a"])
        # The original collection is untouched
        self.assertEqual(collection.ids(), ["b", "a"])

    def test_ties_broken_by_order(self):
        collection = build_collection("experience", [
            {"_id": "two", "startDate": "2022-01-01", "order": 2},
            {"_id": "one", "startDate": "2022-01-01", "order": 1},
        ])
        self.assertEqual(collection.ids(), ["one", "two"])

    def test_missing_dates_sort_last_by_order(self):
        collection = build_collection("experience", [
            {"_id": "undated-2", "order": 2},
            {"_id": "dated", "startDate": "2020-01-01"},
            {"_id": "undated-1", "order": 1},
        ])
        self.assertEqual(collection.ids(), ["dated", "undated-1", "undated-2"])

    def test_update_resorts(self):
        collection = build_collection("experience", [
            {"_id": "a", "startDate": "2024-01"},
            {"_id": "b", "startDate": "2022-01"},
        ])
        updated = reconcile_update(collection, "b", {"_id": "b", "startDate": "2025-01"})
        self.assertEqual(updated.ids(), ["b", "a"])


class TestBlogOrdering(unittest.TestCase):
    def test_publish_date_then_creation_date(self):
        collection = build_collection("blog", [
            {"_id": "draft", "createdAt": "2024-03-01"},
            {"_id": "old", "publishedAt": "2023-01-01", "createdAt": "2022-12-01"},
            {"_id": "new", "publishedAt": "2024-05-01", "createdAt": "2024-01-01"},
        ])
        self.assertEqual(collection.ids(), ["new", "draft", "old"])

    def test_ties_by_creation_date(self):
        collection = build_collection("blog", [
            {"_id": "first", "publishedAt": "2024-05-01", "createdAt": "2024-01-01"},
            {"_id": "second", "publishedAt": "2024-05-01", "createdAt": "2024-02-01"},
        ])
        self.assertEqual(collection.ids(), ["second", "first"])


class TestReconcile(unittest.TestCase):
    def test_unsorted_kind_prepends(self):
        collection = build_collection("project", [{"_id": "1"}, {"_id": "2"}])
        updated = reconcile_create(collection, {"_id": "3"})
        self.assertEqual(updated.ids(), ["3", "1", "2"])

    def test_create_of_existing_id_is_update(self):
        collection = build_collection("project", [{"_id": "1", "title": "old"}])
        updated = reconcile_create(collection, {"_id": "1", "title": "new"})
        self.assertEqual(len(updated), 1)
        self.assertEqual(updated.find("1")["title"], "new")

    def test_missing_entity_requires_refetch(self):
        collection = build_collection("project", [{"_id": "1"}])
        with self.assertRaises(RefetchRequired):
            reconcile_create(collection, None)
        with self.assertRaises(RefetchRequired):
            reconcile_update(collection, "1", {})
        with self.assertRaises(RefetchRequired):
            reconcile_update(collection, "404", {"_id": "404"})

    def test_delete_preserves_survivor_order(self):
        collection = build_collection("experience", [
            {"_id": "a", "startDate": "2024-01"},
            {"_id": "b", "startDate": "2023-01"},
            {"_id": "c", "startDate": "2022-01"},
        ])
        self.assertEqual(reconcile_delete(collection, "b").ids(), ["a", "c"])
        self.assertEqual(reconcile_delete(collection, "zzz").ids(), ["a", "b", "c"])

    def test_entity_id_fallback(self):
        self.assertEqual(entity_id({"id": 7}), 7)
        self.assertEqual(entity_id({"_id": "x", "id": 7}), "x")
        self.assertIsNone(entity_id({}))


if __name__ == '__main__':
    unittest.main()
