import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from .models import AssetInfo, BackupFile, DiscoveryResult, RunSummary, SearchResult, group_by_canvas, unique_assets
from .exceptions import ReportError
from . import config


class ReportGenerator:
    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    @staticmethod
    def missing_asset_infos(discovery: DiscoveryResult, missing_hashes: Iterable[str]) -> List[AssetInfo]:
        """Every occurrence of a missing hash, so each referencing canvas shows up in the report."""
        missing = set(missing_hashes)
        return [a for a in discovery.assets if a.hash in missing]

    def generate_reports(self,
                         missing_assets: List[AssetInfo],
                         search_result: Optional[SearchResult]) -> List[Path]:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            text_path = self.write_text_report(missing_assets, search_result)
            csv_path = self.write_csv_report(missing_assets, search_result)
        except OSError as e:
            raise ReportError(f"Failed to write reports to {self.output_dir}: {e}") from e
        return [text_path, csv_path]

    def write_text_report(self,
                          missing_assets: List[AssetInfo],
                          search_result: Optional[SearchResult],
                          filename: str = config.TEXT_REPORT_NAME) -> Path:
        """
        Human-readable report grouping missing assets by canvas.
        """
        report_path = self.output_dir / filename

        by_canvas = group_by_canvas(self.sorted_references(missing_assets))

        lines = [
            "Canvus Asset Recovery - Missing Assets Report",
            f"Generated: {datetime.now():{config.TIMESTAMP_FORMAT}}",
            f"Total Missing Assets: {len({a.hash for a in missing_assets})}",
            "",
        ]

        for canvas_name in sorted(by_canvas):
            assets = by_canvas[canvas_name]
            lines.append(f"Canvas: {canvas_name} (ID: {assets[0].canvas_id})")
            for asset in assets:
                lines.append(f"  Widget: {asset.widget_name} (ID: {asset.widget_id}, Type: {asset.widget_type})")
                lines.append(f"    Hash: {asset.hash}")
                if asset.original_filename:
                    lines.append(f"    Original Filename: {asset.original_filename}")

                if search_result is not None:
                    best = self._best_backup(search_result, asset.hash)
                    if best:
                        lines.append("    Backup Status: Found in backup")
                        lines.append(f"    Backup Path: {best.path}")
                        lines.append(f"    Backup Size: {best.size} bytes")
                        lines.append(f"    Backup Modified: {best.modified_time:{config.TIMESTAMP_FORMAT}}")
                    else:
                        lines.append("    Backup Status: Not found in any backup")
                lines.append("")

        report_path.write_text("\n".join(lines), encoding="utf-8")
        logging.info(f"Detailed report saved to: {report_path}")
        return report_path

    def write_csv_report(self,
                         missing_assets: List[AssetInfo],
                         search_result: Optional[SearchResult],
                         filename: str = config.CSV_REPORT_NAME) -> Path:
        """One row per missing hash; the first reference in sorted order supplies the metadata."""
        report_path = self.output_dir / filename

        with open(report_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(config.CSV_HEADERS)

            for asset in unique_assets(self.sorted_references(missing_assets)):
                status, path, size, modified = "Not Found", "", "", ""
                best = self._best_backup(search_result, asset.hash) if search_result else None
                if best:
                    status = "Found"
                    path = str(best.path)
                    size = str(best.size)
                    modified = f"{best.modified_time:{config.TIMESTAMP_FORMAT}}"

                writer.writerow([
                    asset.hash,
                    asset.widget_type,
                    asset.original_filename,
                    asset.canvas_id,
                    asset.canvas_name,
                    asset.widget_id,
                    asset.widget_name,
                    status,
                    path,
                    size,
                    modified,
                ])

        logging.info(f"CSV report saved to: {report_path}")
        return report_path

    @staticmethod
    def sorted_references(assets: List[AssetInfo]) -> List[AssetInfo]:
        """Orders references by canvas, widget and hash so output does not depend on crawl order."""
        return sorted(assets, key=lambda a: (a.canvas_name, a.canvas_id, a.widget_id, a.hash))

    @staticmethod
    def _best_backup(search_result: SearchResult, asset_hash: str) -> Optional[BackupFile]:
        files = search_result.found_files.get(asset_hash)
        return files[0] if files else None


def log_summary(summary: RunSummary):
    logging.info("=" * 60)
    logging.info("RECOVERY SUMMARY")
    logging.info("=" * 60)
    logging.info(f"Canvases:              {summary.canvases}")
    logging.info(f"Media references:      {summary.total_assets}")
    logging.info(f"Unique assets:         {summary.unique_assets}")
    logging.info(f"Local asset files:     {summary.local_files} ({summary.local_size / (1024 * 1024):.2f} MB)")
    logging.info(f"Missing assets:        {summary.missing}")
    logging.info(f"Found in backup:       {summary.backup_found}")
    logging.info(f"Still missing:         {summary.still_missing}")
    if summary.restore_performed:
        logging.info(f"Restored:              {summary.restored}")
        logging.info(f"Failed to restore:     {summary.failed}")
        logging.info(f"Bytes restored:        {summary.bytes_restored}")
    if summary.soft_errors:
        logging.warning(f"Errors during discovery: {summary.soft_errors}")
    for path in summary.report_paths:
        logging.info(f"Report: {path}")
    logging.info("=" * 60)
