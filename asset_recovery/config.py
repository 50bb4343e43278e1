"""
Configuration constants for the asset recovery tool.
"""

# --- Asset Naming ---
# Asset files are stored as {hash}.{ext}; the stem must be alphanumeric within these bounds.
HASH_MIN_LENGTH = 8
HASH_MAX_LENGTH = 64

# --- Widget Types ---
MEDIA_WIDGET_TYPES = {'Image', 'Pdf', 'Video'}
BACKGROUND_WIDGET_ID = 'background'
BACKGROUND_WIDGET_NAME = 'Canvas Background'

# --- Discovery & Performance ---
MAX_CONCURRENT_CANVASES = 10
DEFAULT_REQUESTS_PER_SECOND = 10
DEFAULT_SCAN_WORKERS = 1
DEFAULT_API_TIMEOUT = 30  # seconds
API_MAX_RETRIES = 3
API_BACKOFF_FACTOR = 0.1

# --- Backups ---
# Snapshot folders look like: 1757261054_2025_09_07_3.3.0_mt-canvus_backup
BACKUP_FOLDER_MARKER = '_mt-canvus_backup'
BACKUP_ASSETS_SUBFOLDER = 'assets'
COPY_CHUNK_SIZE = 1024 * 1024  # 1 MB
PARTIAL_SUFFIX = '.partial'

# --- Reports ---
TEXT_REPORT_NAME = 'missing_assets_report.txt'
CSV_REPORT_NAME = 'missing_assets.csv'
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
CSV_HEADERS = [
    'Hash',
    'WidgetType',
    'OriginalFilename',
    'CanvasID',
    'CanvasName',
    'WidgetID',
    'WidgetName',
    'BackupStatus',
    'BackupPath',
    'BackupSize',
    'BackupModified',
]

# --- Settings ---
ENV_PREFIX = 'CANVUS_'
DEFAULT_SERVER_URL = 'https://localhost:443'
DEFAULT_OUTPUT_FOLDER = './output'
DEFAULT_LOG_FILE = 'asset_recovery.log'
API_PATH_SUFFIX = '/api/v1'
