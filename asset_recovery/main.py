import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .core import RecoveryApp
from .exceptions import ConfigurationError
from .settings import load_settings


def setup_logging(log_file: Optional[Path], verbose: bool):
    """Sets up logging to both console and a log file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Canvus Asset Recovery: find missing assets and restore them from backups")

    p.add_argument("--config", type=Path, default=None, help="INI settings file")

    p.add_argument("--server", dest="server_url", default=None, help=f"Canvus server URL (default: {config.DEFAULT_SERVER_URL})")
    p.add_argument("--username", default=None, help="Canvus login email")
    p.add_argument("--password", default=None, help=f"Canvus password (or {config.ENV_PREFIX}PASSWORD)")
    p.add_argument("--insecure", dest="insecure_tls", action="store_true", default=None, help="Skip TLS certificate verification")

    p.add_argument("--assets", dest="assets_folder", type=Path, default=None, help="Live assets folder")
    p.add_argument("--backups", dest="backup_root", type=Path, default=None, help="Backup root folder")
    p.add_argument("--output", dest="output_folder", type=Path, default=None, help="Folder for reports")

    p.add_argument("--rps", dest="requests_per_second", type=int, default=None, help="Max API requests per second")
    p.add_argument("--scan-workers", type=int, default=None, help="Parallel workers for the folder scan")
    p.add_argument("--validate-server", dest="validate_on_server", action="store_true", default=None,
                   help="Check every discovered hash against the server's asset endpoint")

    p.add_argument("-y", "--auto-restore", action="store_true", default=None, help="Restore without asking")
    p.add_argument("--discover-only", action="store_true", help="Search backups and report, never restore")
    p.add_argument("--dry-run", action="store_true", help="Log restore actions without copying")
    p.add_argument("--log-file", type=Path, default=None, help=f"Log file (default: <output>/{config.DEFAULT_LOG_FILE})")
    p.add_argument("-v", "--verbose", action="store_true", default=None, help="Enable debug logging")

    return p.parse_args(argv)


def prompt_restore(count: int) -> bool:
    try:
        answer = input(f"Restore {count} assets from backup? [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def main(argv=None):
    args = parse_args(argv)

    overrides = {
        name: getattr(args, name)
        for name in ("server_url", "username", "password", "insecure_tls", "assets_folder", "backup_root",
                     "output_folder", "requests_per_second", "scan_workers", "validate_on_server",
                     "auto_restore", "verbose", "log_file")
    }

    try:
        settings = load_settings(args.config, overrides)
        settings.validate()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    log_file = settings.log_file or settings.output_folder / config.DEFAULT_LOG_FILE
    setup_logging(log_file, settings.verbose)

    logging.info("=== Canvus Asset Recovery Started ===")
    logging.info(f"Assets:  {settings.assets_folder}")
    logging.info(f"Backups: {settings.backup_root}")

    app = RecoveryApp(
        settings,
        confirm=prompt_restore,
        dry_run=args.dry_run,
        discover_only=args.discover_only,
    )

    try:
        app.run()
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception(f"Fatal error while {app.state.value if app.state else 'starting'}.")
        sys.exit(1)


if __name__ == "__main__":
    main()
