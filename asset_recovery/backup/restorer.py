import os
import shutil
import logging
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from .. import config
from ..exceptions import RestoreError
from ..models import BackupFile, RestoreResult, SearchResult


class AssetRestorer:
    def __init__(self, assets_folder: Path, show_progress: Optional[bool] = None):
        self.assets_folder = Path(assets_folder)
        self.progress_disabled = None if show_progress is None else not show_progress

    def restore_assets(self, search_result: SearchResult, dry_run: bool = False) -> RestoreResult:
        """
        Copies the newest backup candidate of every found hash into the assets
        folder, keeping its relative path. Existing files are never overwritten.
        """
        result = RestoreResult()

        to_process = [(h, files[0]) for h, files in sorted(search_result.found_files.items()) if files]
        if not to_process:
            logging.info("No backup files to restore.")
            return result

        logging.info(f"Restoring {len(to_process)} assets to {self.assets_folder} (DryRun={dry_run})...")

        for asset_hash, backup_file in tqdm(to_process, desc="Restoring", unit="asset",
                                            disable=self.progress_disabled):
            target = self.get_asset_path(backup_file)

            if dry_run:
                logging.info(f"[DRY RUN] Copy {backup_file.path} -> {target}")
                continue

            try:
                copied = self._restore_single_file(backup_file, target)
            except RestoreError as e:
                logging.error(f"Failed to restore {asset_hash}: {e}")
                result.failed_files.append(asset_hash)
                result.errors.append(f"{asset_hash}: {e}")
                continue

            result.restored_files.append(asset_hash)
            result.total_bytes += copied

        logging.info(f"Restoration complete: {len(result.restored_files)} restored, "
                     f"{len(result.failed_files)} failed, {result.total_bytes} bytes copied.")
        return result

    def get_asset_path(self, backup_file: BackupFile) -> Path:
        return self.assets_folder / backup_file.relative_path

    def _restore_single_file(self, backup_file: BackupFile, target: Path) -> int:
        """Returns the number of bytes copied (0 if the target already exists)."""
        if target.exists():
            logging.debug(f"Asset already exists, skipping: {target}")
            return 0

        partial = target.with_name(target.name + config.PARTIAL_SUFFIX)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(backup_file.path, 'rb') as src, open(partial, 'wb') as dst:
                shutil.copyfileobj(src, dst, config.COPY_CHUNK_SIZE)
                copied = dst.tell()
                dst.flush()
                os.fsync(dst.fileno())
            shutil.copystat(backup_file.path, partial)
            os.replace(partial, target)
        except OSError as e:
            try:
                partial.unlink(missing_ok=True)
            except OSError as cleanup_err:
                logging.debug(f"Failed to remove {partial}: {cleanup_err}")
            raise RestoreError(f"failed to copy {backup_file.path} -> {target}: {e}") from e

        logging.debug(f"Restored: {backup_file.path} -> {target}")
        return copied
