import logging
from enum import Enum
from typing import Callable, Optional

from .api.session import CanvusSession
from .backup.restorer import AssetRestorer
from .backup.searcher import BackupSearcher
from .discovery.discoverer import AssetDiscoverer
from .exceptions import AuthenticationError
from .models import RunSummary
from .reporting import ReportGenerator, log_summary
from .scanning.filesystem import AssetScanner, find_missing_assets
from .settings import Settings


class RecoveryState(Enum):
    AUTHENTICATING = 'authenticating'
    DISCOVERING = 'discovering'
    SCANNING = 'scanning'
    DIFFING = 'diffing'
    NO_MISSING = 'no_missing'
    SEARCHING_BACKUPS = 'searching_backups'
    RESTORING = 'restoring'
    REPORTING = 'reporting'
    DONE = 'done'


def default_session_factory(settings: Settings) -> CanvusSession:
    return CanvusSession(settings.api_url, timeout=settings.timeout, insecure_tls=settings.insecure_tls)


class RecoveryApp:
    def __init__(self,
                 settings: Settings,
                 session_factory: Callable[[Settings], object] = default_session_factory,
                 confirm: Optional[Callable[[int], bool]] = None,
                 dry_run: bool = False,
                 discover_only: bool = False,
                 show_progress: Optional[bool] = None):
        """
        Args:
            confirm: Called with the number of restorable assets when auto_restore
                     is off. Returning False skips restoration but still reports.
        """
        self.settings = settings
        self.session_factory = session_factory
        self.confirm = confirm or (lambda count: False)
        self.dry_run = dry_run
        self.discover_only = discover_only
        self.show_progress = show_progress
        self.state: Optional[RecoveryState] = None

    def _enter(self, state: RecoveryState):
        logging.debug(f"State: {self.state.value if self.state else 'start'} -> {state.value}")
        self.state = state

    def run(self) -> RunSummary:
        """
        Executes the recovery pipeline.
        1. Authenticate & Discover referenced assets
        2. Scan the local assets folder and diff
        3. Search backups for missing assets
        4. Restore (optional) and report
        """
        s = self.settings
        s.validate()
        summary = RunSummary()

        # --- Step 1: Authentication ---
        self._enter(RecoveryState.AUTHENTICATING)
        logging.info(f"Connecting to Canvus server: {s.api_url}")
        session = self.session_factory(s)
        try:
            session.login(s.username, s.password)
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Login failed: {e}") from e
        logging.info("Authenticated with Canvus server.")

        try:
            self._run_pipeline(session, summary)
        finally:
            try:
                session.logout()
            except Exception as e:
                logging.warning(f"Logout failed: {e}")

        log_summary(summary)
        return summary

    def _run_pipeline(self, session, summary: RunSummary):
        s = self.settings

        # --- Step 2: Discovery ---
        self._enter(RecoveryState.DISCOVERING)
        discoverer = AssetDiscoverer(session, s.requests_per_second, show_progress=self.show_progress)
        discovery = discoverer.discover_all_assets(validate_on_server=s.validate_on_server)

        unique = discovery.get_unique_assets()
        summary.canvases = len(discovery.canvases)
        summary.total_assets = len(discovery.assets)
        summary.unique_assets = len(unique)
        summary.soft_errors = len(discovery.errors)
        for err in discovery.errors:
            logging.warning(f"Discovery error: {err}")

        # --- Step 3: Scanning ---
        self._enter(RecoveryState.SCANNING)
        scan = AssetScanner().scan(s.assets_folder, max_workers=s.scan_workers)
        summary.local_files = len(scan.files)
        summary.local_size = scan.total_size

        # --- Step 4: Diff ---
        self._enter(RecoveryState.DIFFING)
        missing = find_missing_assets((a.hash for a in unique), scan)
        summary.missing = len(missing)
        logging.info(f"Missing assets: {len(missing)} of {len(unique)}")

        if not missing:
            self._enter(RecoveryState.NO_MISSING)
            logging.info("No missing assets found. All assets are present.")
            self._enter(RecoveryState.DONE)
            return

        # --- Step 5: Backup search ---
        self._enter(RecoveryState.SEARCHING_BACKUPS)
        search = BackupSearcher(s.backup_root).search_for_assets(missing)
        summary.backup_found = len(search.found_files)
        summary.still_missing = len(search.missing_hashes)

        # --- Step 6: Restoration ---
        if search.found_files and not self.discover_only:
            if s.auto_restore or self.confirm(len(search.found_files)):
                self._enter(RecoveryState.RESTORING)
                restore = AssetRestorer(s.assets_folder, show_progress=self.show_progress) \
                    .restore_assets(search, dry_run=self.dry_run)
                summary.restore_performed = not self.dry_run
                summary.restored = len(restore.restored_files)
                summary.failed = len(restore.failed_files)
                summary.bytes_restored = restore.total_bytes
                for err in restore.errors:
                    logging.warning(f"Restore error: {err}")
            else:
                logging.info("Skipping asset restoration.")
        elif not search.found_files:
            logging.info("No backup copies found - skipping restoration.")

        # --- Step 7: Reports ---
        self._enter(RecoveryState.REPORTING)
        reporter = ReportGenerator(s.output_folder)
        missing_infos = reporter.missing_asset_infos(discovery, missing)
        summary.report_paths = reporter.generate_reports(missing_infos, search)

        self._enter(RecoveryState.DONE)
