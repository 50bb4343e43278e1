"""
Runtime settings: INI file first, CANVUS_* environment variables as fallback,
command-line overrides last.
"""
import os
import configparser
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Dict, Any

from . import config
from .exceptions import ConfigurationError

invalid_config = (None, '', 'None')

# Setting name -> (INI section, INI key)
_INI_KEYS = {
    'server_url': ('server', 'url'),
    'username': ('server', 'username'),
    'password': ('server', 'password'),
    'insecure_tls': ('server', 'insecure_tls'),
    'timeout': ('server', 'timeout'),
    'assets_folder': ('paths', 'assets_folder'),
    'backup_root': ('paths', 'backup_root_folder'),
    'output_folder': ('paths', 'output_folder'),
    'requests_per_second': ('performance', 'requests_per_second'),
    'scan_workers': ('performance', 'scan_workers'),
    'auto_restore': ('performance', 'auto_restore'),
    'validate_on_server': ('performance', 'validate_on_server'),
    'verbose': ('logging', 'verbose'),
    'log_file': ('logging', 'log_file'),
}


@dataclass
class Settings:
    server_url: str = config.DEFAULT_SERVER_URL
    username: Optional[str] = None
    password: Optional[str] = None
    insecure_tls: bool = False
    timeout: int = config.DEFAULT_API_TIMEOUT
    assets_folder: Optional[Path] = None
    backup_root: Optional[Path] = None
    output_folder: Path = Path(config.DEFAULT_OUTPUT_FOLDER)
    requests_per_second: int = config.DEFAULT_REQUESTS_PER_SECOND
    scan_workers: int = config.DEFAULT_SCAN_WORKERS
    auto_restore: bool = False
    validate_on_server: bool = False
    verbose: bool = False
    log_file: Optional[Path] = None

    @property
    def api_url(self) -> str:
        url = self.server_url.rstrip('/')
        if not url.endswith(config.API_PATH_SUFFIX):
            url += config.API_PATH_SUFFIX
        return url

    def validate(self):
        if not self.username or not self.password:
            raise ConfigurationError("Canvus server username and password are required.")
        if not self.assets_folder:
            raise ConfigurationError("Assets folder path is required.")
        if not self.backup_root:
            raise ConfigurationError("Backup root folder path is required.")
        if self.requests_per_second < 1:
            raise ConfigurationError("requests_per_second must be at least 1.")
        if self.scan_workers < 1:
            raise ConfigurationError("scan_workers must be at least 1.")


def _coerce(name: str, raw: Any) -> Any:
    """Converts a raw INI/env string to the type of the Settings field."""
    if not isinstance(raw, str):
        return raw
    if name in ('insecure_tls', 'auto_restore', 'validate_on_server', 'verbose'):
        value = raw.strip().lower()
        if value in ('1', 'true', 'yes', 'on'):
            return True
        if value in ('0', 'false', 'no', 'off'):
            return False
        raise ConfigurationError(f"Invalid boolean for {name}: {raw!r}")
    if name in ('timeout', 'requests_per_second', 'scan_workers'):
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid integer for {name}: {raw!r}") from None
    if name in ('assets_folder', 'backup_root', 'output_folder', 'log_file'):
        return Path(raw).expanduser()
    return raw


def load_settings(config_file: Optional[Path] = None,
                  overrides: Optional[Dict[str, Any]] = None,
                  environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Builds Settings from (in increasing precedence) defaults, the INI file,
    CANVUS_* environment variables for values the INI leaves unset, and
    non-None overrides.
    """
    environ = os.environ if environ is None else environ
    parser = configparser.ConfigParser()

    if config_file:
        if not Path(config_file).exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        parser.read(config_file, encoding='utf-8')
        logging.info(f"Using config file: {config_file}")

    values: Dict[str, Any] = {}
    for f in fields(Settings):
        section, key = _INI_KEYS[f.name]
        raw = parser.get(section, key, fallback=None)
        if raw in invalid_config:
            raw = environ.get(config.ENV_PREFIX + f.name.upper())
        if raw not in invalid_config:
            values[f.name] = _coerce(f.name, raw)

    for name, value in (overrides or {}).items():
        if value is not None:
            values[name] = _coerce(name, value)

    return Settings(**values)
