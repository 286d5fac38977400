# tests/test_file_manager.py

"""Tests for the FileManager storage module."""

import csv
import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from typing import Any

from pricewatch.models.notification import NotificationKind
from pricewatch.models.product import Product
from pricewatch.services.batch_orchestrator import CycleSummary, ItemResult
from pricewatch.storage.file_manager import FileManager

STARTED = datetime(2026, 3, 14, 9, 5, 30)


class TestFileManager(unittest.TestCase):
    """Tests for JSON/CSV cycle archives."""

    def setUp(self) -> None:
        """Point the manager at a temp directory."""
        self.tmp_dir = Path(tempfile.mkdtemp()) / "results"
        self.fm = FileManager(self.tmp_dir)

    def _summary(self) -> CycleSummary:
        """One updated and one failed item."""
        ok = Product(
            url="https://www.amazon.in/dp/B1",
            platform="amazon",
            title="Zebra Headphones",
            current_price=1299.0,
            lowest_price=1299.0,
        )
        bad = Product(
            url="https://www.flipkart.com/p/itm2",
            platform="flipkart",
            title="Alpha Phone",
            current_price=24999.0,
        )
        return CycleSummary(
            started_at=STARTED,
            finished_at=STARTED,
            results=[
                ItemResult(
                    url=ok.url,
                    title=ok.title,
                    ok=True,
                    product=ok,
                    kind=NotificationKind.LOWEST_PRICE,
                    notified=True,
                ),
                ItemResult(
                    url=bad.url,
                    title=bad.title,
                    ok=False,
                    product=bad,
                    error="Failed to fetch: timeout",
                    error_type="FetchError",
                ),
            ],
        )

    def test_creates_results_dir(self) -> None:
        """The directory is created on construction."""
        self.assertTrue(self.tmp_dir.is_dir())

    def test_save_summary_creates_json(self) -> None:
        """The JSON archive mirrors CycleSummary.to_dict()."""
        path = self.fm.save_summary(self._summary())

        self.assertEqual(path.name, "cycle_20260314_090530.json")
        with open(path, encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        self.assertEqual(data["updatedCount"], 1)
        self.assertEqual(data["failedCount"], 1)
        self.assertEqual(
            data["failures"],
            [
                {
                    "url": "https://www.flipkart.com/p/itm2",
                    "error": "Failed to fetch: timeout",
                }
            ],
        )
        self.assertEqual(data["startedAt"], "2026-03-14T09:05:30")

    def test_save_empty_summary(self) -> None:
        """An empty cycle still produces an archive."""
        path = self.fm.save_summary(CycleSummary(started_at=STARTED))
        with open(path, encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        self.assertEqual(data["results"], [])
        self.assertIsNone(data["finishedAt"])

    def test_export_csv_failures_first(self) -> None:
        """Header, then failed rows, then updated rows."""
        path = self.fm.export_csv(self._summary())

        self.assertEqual(path.name, "cycle_20260314_090530.csv")
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))

        self.assertEqual(
            rows[0],
            [
                "Title", "Status", "Price", "Currency", "Lowest",
                "Notification", "Notified", "Error", "URL",
            ],
        )
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[1][0], "Alpha Phone")
        self.assertEqual(rows[1][1], "failed")
        self.assertEqual(rows[1][7], "Failed to fetch: timeout")
        self.assertEqual(rows[2][1], "updated")
        self.assertEqual(rows[2][5], "LOWEST_PRICE")
        self.assertEqual(rows[2][6], "yes")

    def test_export_csv_empty(self) -> None:
        """No results means a header-only CSV."""
        path = self.fm.export_csv(CycleSummary(started_at=STARTED))
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        self.assertEqual(len(rows), 1)


if __name__ == "__main__":
    unittest.main()
