"""Configuration management for the sync client."""

import os
import json
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = 'http://127.0.0.1:3001'
DEFAULT_TIMEOUT = 10.0


class Config:
    """JSON-file backed configuration for the sync client.

    Environment variables override the file for the server URL
    (``TASKCLOUD_SERVER_URL``) and local database (``TASKCLOUD_LOCAL_DB``).
    """

    def __init__(self, config_file: str = None):
        self.config_file = config_file or os.getenv('TASKCLOUD_SYNC_CONFIG') or os.path.join(
            os.path.expanduser('~'), '.taskcloud', 'config.json'
        )
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration from file."""
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    self._config = json.load(f)
            except (OSError, ValueError):
                logger.warning('config file %s unreadable; using defaults', self.config_file)
                self._config = {}
        else:
            self._config = {}

    def save(self) -> None:
        """Save configuration to file."""
        os.makedirs(os.path.dirname(os.path.abspath(self.config_file)), exist_ok=True)
        with open(self.config_file, 'w') as f:
            json.dump(self._config, f, indent=2)

    @property
    def server_url(self) -> str:
        return os.getenv('TASKCLOUD_SERVER_URL') or self._config.get('server_url', DEFAULT_SERVER_URL)

    @server_url.setter
    def server_url(self, value: str):
        self._config['server_url'] = value
        self.save()

    @property
    def local_db_path(self) -> str:
        return os.getenv('TASKCLOUD_LOCAL_DB') or self._config.get(
            'local_db_path', os.path.join(os.path.dirname(os.path.abspath(self.config_file)), 'local_data.db')
        )

    @local_db_path.setter
    def local_db_path(self, value: str):
        self._config['local_db_path'] = value
        self.save()

    @property
    def shared_user_id(self) -> Optional[str]:
        """Value sent as X-User-ID for the server's shared, token-less mode."""
        return self._config.get('shared_user_id')

    @shared_user_id.setter
    def shared_user_id(self, value: Optional[str]):
        self._config['shared_user_id'] = value
        self.save()

    @property
    def timeout(self) -> float:
        try:
            return float(self._config.get('timeout', DEFAULT_TIMEOUT))
        except (TypeError, ValueError):
            return DEFAULT_TIMEOUT

    @timeout.setter
    def timeout(self, value: float):
        self._config['timeout'] = value
        self.save()
