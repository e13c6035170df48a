#!/usr/bin/env python3
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class ServerSettings:
    """Listening address and build-server options for the dev server."""
    host: str = '127.0.0.1'
    port: int = 8000
    root: str = 'public'
    build_server: Optional[str] = None
    log_level: str = 'info'


LOG_LEVELS = ('critical', 'error', 'warning', 'info', 'debug')


class ConfigManager:
    """Configuration manager backed by a JSON file, without caching."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.devrouter'
        self.config_file = self.config_dir / 'dev_server.json'

    def _ensure_config_dir(self):
        """Ensure the configuration directory exists."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def _ensure_config_file(self) -> bool:
        """Ensure the config file exists; return True if newly created."""
        self._ensure_config_dir()
        if not self.config_file.exists():
            self._write(asdict(ServerSettings()))
            return True
        return False

    def ensure_config_file(self) -> Path:
        """Public helper to guarantee the config file exists."""
        self._ensure_config_file()
        return self.config_file

    def _write(self, data: Dict[str, Any]):
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def _load_settings(self) -> ServerSettings:
        """Load settings from disk, falling back to defaults per key."""
        created_new = self._ensure_config_file()
        if created_new:
            return ServerSettings()

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level value must be an object")
        except (json.JSONDecodeError, ValueError, OSError) as e:
            print(f"Failed to load configuration file: {e}")
            # Reset the file to avoid repeat failures
            self._write(asdict(ServerSettings()))
            return ServerSettings()

        settings = ServerSettings()

        host = data.get('host')
        if isinstance(host, str) and host.strip():
            settings.host = host.strip()

        # Parse the port, ignoring anything outside the valid range
        try:
            port = int(data.get('port', settings.port))
            if 0 < port < 65536:
                settings.port = port
        except (TypeError, ValueError):
            pass

        root = data.get('root')
        if isinstance(root, str) and root.strip():
            settings.root = root

        build_server = data.get('build_server')
        if isinstance(build_server, str) and build_server.strip():
            settings.build_server = build_server.strip()

        log_level = str(data.get('log_level', settings.log_level)).lower()
        if log_level in LOG_LEVELS:
            settings.log_level = log_level

        return settings

    @property
    def settings(self) -> ServerSettings:
        """Return the settings currently stored on disk."""
        return self._load_settings()

    def update(self, **values) -> ServerSettings:
        """Persist the given settings, ignoring None values."""
        current = asdict(self._load_settings())
        for key, value in values.items():
            if key not in current:
                raise KeyError(f"Unknown setting: {key}")
            if value is not None:
                current[key] = value

        try:
            self._write(current)
        except OSError as e:
            print(f"Failed to write configuration file: {e}")
            raise
        return self._load_settings()


# Global instance
config_manager = ConfigManager()
