import csv
import logging
from pathlib import Path

from .models import Fate, RunSummary


class ReportGenerator:
    HEADERS = ["Source Path", "Fate", "Destination Path", "Notes"]

    def __init__(self, summary: RunSummary):
        self.summary = summary

    def log_summary(self):
        counts = self.summary.counts()
        parts = [f"{fate.value}={counts.get(fate, 0)}" for fate in Fate]
        logging.info(f"Run complete: {', '.join(parts)} (sidecars skipped={self.summary.skipped_sidecars})")

        for outcome in self.summary.by_fate(Fate.FAILED):
            logging.warning(f"Left in place: {outcome.path} ({outcome.note})")

    def write_csv(self, output_csv: Path):
        """One row per processed file, in visitation order."""
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for outcome in self.summary.outcomes:
                writer.writerow([
                    str(outcome.path),
                    outcome.fate.value,
                    str(outcome.destination) if outcome.destination else "",
                    outcome.note,
                ])

        logging.info(f"Report written: {output_csv} ({len(self.summary.outcomes)} rows)")
