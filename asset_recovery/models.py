import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from . import config


class WidgetType(Enum):
    IMAGE = 'Image'
    PDF = 'Pdf'
    VIDEO = 'Video'
    CANVAS_BACKGROUND = 'CanvasBackground'

    @classmethod
    def media_type(cls, raw: str) -> Optional['WidgetType']:
        """Returns the media WidgetType for a raw widget_type string, or None for non-media widgets."""
        if raw in config.MEDIA_WIDGET_TYPES:
            return cls(raw)
        return None


@dataclass
class Canvas:
    id: str
    name: str
    state: Optional[str] = None
    folder_id: Optional[str] = None


@dataclass
class Widget:
    id: str
    widget_type: str


@dataclass
class MediaDetails:
    """
    Detail response shared by Image, Pdf and Video widgets.
    """
    hash: str = ''
    original_filename: str = ''
    title: str = ''


@dataclass
class CanvasBackground:
    type: str = ''
    image_hash: Optional[str] = None


@dataclass
class AssetInfo:
    """
    One media reference found on the server. Identity for deduplication is `hash`.
    """
    hash: str
    widget_type: str        # Image/Pdf/Video/CanvasBackground
    original_filename: str
    canvas_id: str
    canvas_name: str
    widget_id: str
    widget_name: str


def unique_assets(assets: List[AssetInfo]) -> List[AssetInfo]:
    """Deduplicates by hash, keeping the first occurrence of each."""
    by_hash: Dict[str, AssetInfo] = {}
    for asset in assets:
        if asset.hash not in by_hash:
            by_hash[asset.hash] = asset
    return list(by_hash.values())


def group_by_canvas(assets: List[AssetInfo]) -> Dict[str, List[AssetInfo]]:
    """Canvas name -> assets, in input order within each canvas."""
    grouped: Dict[str, List[AssetInfo]] = {}
    for asset in assets:
        grouped.setdefault(asset.canvas_name, []).append(asset)
    return grouped


@dataclass
class ServerValidationResult:
    total_assets: int = 0
    existing_assets: int = 0
    missing_assets: int = 0
    validation_errors: List[str] = field(default_factory=list)


@dataclass
class DiscoveryResult:
    """
    Snapshot of one discovery crawl. Asset order is not deterministic.
    """
    start_time: datetime
    assets: List[AssetInfo] = field(default_factory=list)
    canvases: List[Canvas] = field(default_factory=list)
    end_time: Optional[datetime] = None
    errors: List[str] = field(default_factory=list)
    server_validation: Optional[ServerValidationResult] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def add_assets(self, assets: List[AssetInfo]):
        with self._lock:
            self.assets.extend(assets)

    def add_error(self, message: str):
        with self._lock:
            self.errors.append(message)

    def get_unique_assets(self) -> List[AssetInfo]:
        return unique_assets(self.assets)

    def get_assets_by_canvas(self) -> Dict[str, List[AssetInfo]]:
        return group_by_canvas(self.assets)


@dataclass
class FileInfo:
    path: Path              # absolute
    hash: str
    filename: str
    size: int
    relative_path: Path     # relative to the scanned root


@dataclass
class ScanResult:
    files: List[FileInfo] = field(default_factory=list)
    hash_map: Dict[str, FileInfo] = field(default_factory=dict)
    total_size: int = 0

    def add(self, info: FileInfo):
        self.files.append(info)
        self.hash_map[info.hash] = info
        self.total_size += info.size


@dataclass
class BackupFile:
    path: Path
    hash: str
    filename: str
    extension: str
    size: int
    modified_time: datetime
    relative_path: Path     # relative to the snapshot's assets folder


@dataclass
class SearchResult:
    found_files: Dict[str, List[BackupFile]] = field(default_factory=dict)
    missing_hashes: List[str] = field(default_factory=list)
    total_searched: int = 0
    total_files: int = 0


@dataclass
class RestoreResult:
    restored_files: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    total_bytes: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class RunSummary:
    canvases: int = 0
    total_assets: int = 0
    unique_assets: int = 0
    local_files: int = 0
    local_size: int = 0
    missing: int = 0
    backup_found: int = 0
    still_missing: int = 0
    restored: int = 0
    failed: int = 0
    bytes_restored: int = 0
    soft_errors: int = 0
    restore_performed: bool = False
    report_paths: List[Path] = field(default_factory=list)
