import os
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .. import config
from ..exceptions import BackupSearchError
from ..models import BackupFile, SearchResult


class BackupSearcher:
    def __init__(self, backup_root: Path, snapshot_layout: bool = True):
        """
        Args:
            snapshot_layout: Look for `*_mt-canvus_backup/assets` snapshot folders
                             under the root. If False (or none exist) the root
                             itself is searched as one assets tree.
        """
        self.backup_root = Path(backup_root)
        self.snapshot_layout = snapshot_layout

    def search_for_assets(self, missing_hashes: Iterable[str]) -> SearchResult:
        """
        Finds backup copies of the requested hashes. Candidates for each hash
        are returned newest first.
        """
        wanted: Set[str] = set(missing_hashes)
        result = SearchResult()

        if not wanted:
            logging.info("No missing assets to search for.")
            return result

        if not self.backup_root.is_dir():
            logging.warning(f"Backup folder does not exist: {self.backup_root}")
            result.missing_hashes = sorted(wanted)
            return result

        logging.info(f"Searching for {len(wanted)} missing assets in {self.backup_root}...")

        for assets_root in self._find_search_roots():
            self._search_backup_folder(assets_root, wanted, result)
            result.total_searched += 1

        result.missing_hashes = sorted(h for h in wanted if h not in result.found_files)
        self.sort_backup_files(result)

        logging.info(f"Backup search complete: {result.total_searched} folders searched, "
                     f"{result.total_files} files matched, {len(result.found_files)} assets found, "
                     f"{len(result.missing_hashes)} still missing.")
        return result

    def _find_search_roots(self) -> List[Path]:
        if not self.snapshot_layout:
            return [self.backup_root]

        try:
            with os.scandir(self.backup_root) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise BackupSearchError(f"Failed to read backup root {self.backup_root}: {e}") from e

        snapshots = [e for e in entries if e.is_dir() and self.is_backup_folder(e.name)]
        if not snapshots:
            logging.warning(f"No snapshot folders in {self.backup_root}; searching it directly.")
            return [self.backup_root]

        roots = []
        for entry in snapshots:
            assets_path = Path(entry.path) / config.BACKUP_ASSETS_SUBFOLDER
            if assets_path.is_dir():
                logging.debug(f"Found backup assets folder: {assets_path}")
                roots.append(assets_path)
            else:
                logging.debug(f"Snapshot has no '{config.BACKUP_ASSETS_SUBFOLDER}' folder: {entry.path}")

        if not roots:
            # Paths outside assets/ would not map back into the live folder
            logging.warning(f"None of the {len(snapshots)} snapshot folders in {self.backup_root} "
                            f"has an '{config.BACKUP_ASSETS_SUBFOLDER}' subfolder.")
        return roots

    @staticmethod
    def is_backup_folder(folder_name: str) -> bool:
        # e.g. 1757261054_2025_09_07_3.3.0_mt-canvus_backup
        return config.BACKUP_FOLDER_MARKER in folder_name

    def _search_backup_folder(self, assets_root: Path, wanted: Set[str], result: SearchResult):
        def on_error(err: OSError):
            logging.debug(f"Error accessing {err.filename}: {err}")

        for dirpath, _dirnames, filenames in os.walk(assets_root, onerror=on_error):
            for name in filenames:
                stem, ext = os.path.splitext(name)
                if stem not in wanted:
                    continue

                path = Path(dirpath) / name
                try:
                    st = path.stat()
                except OSError as e:
                    logging.debug(f"Error accessing {path}: {e}")
                    continue

                try:
                    rel_path = path.relative_to(assets_root)
                except ValueError:
                    rel_path = Path(name)

                backup_file = BackupFile(
                    path=path,
                    hash=stem,
                    filename=name,
                    extension=ext,
                    size=st.st_size,
                    modified_time=datetime.fromtimestamp(st.st_mtime),
                    relative_path=rel_path,
                )
                result.found_files.setdefault(stem, []).append(backup_file)
                result.total_files += 1

                logging.debug(f"Found backup: {path} (size: {st.st_size} bytes, "
                              f"modified: {backup_file.modified_time:{config.TIMESTAMP_FORMAT}})")

    @staticmethod
    def sort_backup_files(result: SearchResult):
        """Orders every candidate list newest first (ties by path)."""
        for files in result.found_files.values():
            files.sort(key=lambda f: str(f.path))
            files.sort(key=lambda f: f.modified_time, reverse=True)

    @staticmethod
    def get_best_backup_file(result: SearchResult, asset_hash: str) -> Optional[BackupFile]:
        files = result.found_files.get(asset_hash)
        if not files:
            return None
        return files[0]
