# pricewatch/storage/file_manager.py

"""Archives cycle summaries to disk."""

import csv
import json
import logging
from pathlib import Path

from pricewatch.config.settings import Settings
from pricewatch.services.batch_orchestrator import CycleSummary

logger = logging.getLogger("pricewatch.storage")


class FileManager:
    """Writes cycle summaries under the results directory."""

    def __init__(self, results_dir: Path | None = None) -> None:
        self.results_dir: Path = results_dir or Settings.RESULTS_DIR
        self.results_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("FileManager initialised, results_dir=%s", self.results_dir)

    def _stamp(self, summary: CycleSummary) -> str:
        return summary.started_at.strftime("%Y%m%d_%H%M%S")

    def save_summary(self, summary: CycleSummary) -> Path:
        """Save a cycle summary to a timestamped JSON file."""
        filepath = self.results_dir / f"cycle_{self._stamp(summary)}.json"

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(summary.to_dict(), f, ensure_ascii=False, indent=2)

        logger.info(
            "Saved cycle summary (%d updated, %d failed) to %s",
            summary.updated_count,
            summary.failed_count,
            filepath,
        )
        return filepath

    def export_csv(self, summary: CycleSummary) -> Path:
        """Export per-product outcomes to a CSV file, failures first."""
        filepath = self.results_dir / f"cycle_{self._stamp(summary)}.csv"

        rows = sorted(summary.results, key=lambda r: (r.ok, r.title.lower()))
        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(
                [
                    "Title", "Status", "Price", "Currency", "Lowest",
                    "Notification", "Notified", "Error", "URL",
                ]
            )
            for r in rows:
                writer.writerow(
                    [
                        r.title,
                        "updated" if r.ok else "failed",
                        r.product.current_price,
                        r.product.currency,
                        r.product.lowest_price,
                        r.kind.value,
                        "yes" if r.notified else "no",
                        r.error or r.mail_error or "",
                        r.url,
                    ]
                )

        logger.info(
            "Exported %d cycle rows to %s", len(rows), filepath,
        )
        return filepath
