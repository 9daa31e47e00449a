"""
Secret Store

Secrets are mounted as files, one per secret, under SECRET_MOUNT_PATH.
"""

import logging
import os
from typing import Optional

from gitdeploy.core.config import settings
from gitdeploy.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def read_secret(name: str, mount_path: Optional[str] = None) -> str:
    """Reads a mounted secret and strips surrounding whitespace."""
    path = os.path.join(mount_path or settings.SECRET_MOUNT_PATH, name)
    try:
        with open(path, "r", encoding="utf-8") as secret_file:
            return secret_file.read().strip()
    except OSError as e:
        raise ConfigurationError(f"unable to read secret {name}: {e.strerror}") from e


def private_key_path() -> str:
    return os.path.join(settings.SECRET_MOUNT_PATH, settings.PRIVATE_KEY_FILENAME)
