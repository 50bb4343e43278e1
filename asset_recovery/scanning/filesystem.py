import os
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional
from concurrent.futures import ThreadPoolExecutor

from .. import config
from ..exceptions import AssetFolderNotFoundError
from ..models import FileInfo, ScanResult


def extract_hash_from_filename(filename: str) -> Optional[str]:
    """
    Returns the hash encoded in a `{hash}.{ext}` filename, or None.

    The stem must be 8-64 ASCII alphanumeric characters.
    """
    stem, ext = os.path.splitext(filename)
    if not ext:
        return None
    if not config.HASH_MIN_LENGTH <= len(stem) <= config.HASH_MAX_LENGTH:
        return None
    if not (stem.isascii() and stem.isalnum()):
        return None
    return stem


def find_missing_assets(discovered_hashes: Iterable[str], scan_result: ScanResult) -> List[str]:
    """Hashes referenced on the server but absent from the scanned folder (first-seen order)."""
    missing = []
    seen = set()
    for h in discovered_hashes:
        if h in seen:
            continue
        seen.add(h)
        if h not in scan_result.hash_map:
            missing.append(h)
    return missing


class AssetScanner:
    def scan(self, root: Path, max_workers: int = config.DEFAULT_SCAN_WORKERS) -> ScanResult:
        """
        Builds a hash -> file index for every `{hash}.{ext}` file under root.

        Args:
            max_workers: >1 distributes stat calls over a thread pool. File order
                         in the result is then not stable.
        """
        root = Path(root)
        if not root.is_dir():
            raise AssetFolderNotFoundError(f"Assets folder does not exist: {root}")

        root = root.resolve()
        if max_workers <= 1:
            result = self._scan_sequential(root)
        else:
            result = self._scan_parallel(root, max_workers)

        logging.info(f"Scanned {root}: {len(result.files)} asset files "
                     f"({result.total_size / (1024 * 1024):.2f} MB)")
        return result

    def _scan_sequential(self, root: Path) -> ScanResult:
        result = ScanResult()
        for path in self._iter_files(root):
            info = self._process_single_file(root, path)
            if info:
                result.add(info)
        return result

    def _scan_parallel(self, root: Path, max_workers: int) -> ScanResult:
        result = ScanResult()
        # Filter on the name before handing out stat work
        candidates = [p for p in self._iter_files(root) if extract_hash_from_filename(p.name)]

        logging.info(f"Parallel scan: {len(candidates)} candidate files, {max_workers} workers")

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            for info in executor.map(lambda p: self._process_single_file(root, p), candidates):
                if info:
                    result.add(info)
        return result

    def _process_single_file(self, root: Path, path: Path) -> Optional[FileInfo]:
        """Returns FileInfo for a conforming asset file, None for anything else."""
        file_hash = extract_hash_from_filename(path.name)
        if not file_hash:
            return None

        try:
            size = path.stat().st_size
        except OSError as e:
            # File vanished or became unreadable between walk and stat
            logging.warning(f"Failed to stat {path}: {e}")
            return None

        try:
            rel_path = path.relative_to(root)
        except ValueError:
            rel_path = Path(path.name)

        return FileInfo(
            path=path,
            hash=file_hash,
            filename=path.name,
            size=size,
            relative_path=rel_path,
        )

    def _iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Cannot read directory {current}: {e}")
                continue

            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            for e in entries:
                try:
                    if e.is_dir(follow_symlinks=False):
                        dirs.append(Path(e.path))
                    elif e.is_file(follow_symlinks=False):
                        yield Path(e.path)
                except OSError as err:
                    logging.warning(f"Skipping {e.path}: {err}")

            # Reversed so we process A before Z
            for d in reversed(dirs):
                stack.append(d)
