"""
Application Configuration Persistence
======================================

This module manages the serialization and deserialization of the admin
console's session. It ensures that the Content API location, media host
settings, retry settings and the stored credentials survive restarts.

Key Responsibilities:
---------------------
- File-System Persistence: Stores config in a hidden JSON file in the
  user's home directory (`~/.portfolio_admin_config.json`).
- State Synchronization: Maps JSON keys to the attributes of the
  `AdminSession` dataclasses.
- Environment Overrides: `PORTFOLIO_API_URL`, `MEDIA_HOST_CLOUD_NAME` and
  `MEDIA_HOST_UPLOAD_PRESET` take precedence over the file.
- Security Logging: Records save/load events while redacting the token.

Author: Portfolio Admin Project
"""

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from portfolio_admin.core.session import AdminSession
from portfolio_admin.utils.logger import log_config

CONFIG_PATH = Path.home() / ".portfolio_admin_config.json"

# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "PORTFOLIO_API_URL": ("api", "base_url"),
    "MEDIA_HOST_CLOUD_NAME": ("media", "cloud_name"),
    "MEDIA_HOST_UPLOAD_PRESET": ("media", "upload_preset"),
}

SECTIONS = ("api", "media", "retry", "credentials")


def save_config(session: AdminSession, path: Optional[Path] = None) -> bool:
    """
    Persist the current session state to the configuration file.

    Args:
        session: The session containing the state to be saved.
        path: Override for ``CONFIG_PATH``.

    Returns:
        True when the file was written.
    """
    logger = logging.getLogger(__name__)
    path = Path(path) if path else CONFIG_PATH

    try:
        data = {name: asdict(getattr(session, name)) for name in SECTIONS}

        log_config("Saving Configuration", data, logger)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        logger.info(f"Configuration saved successfully to {path}")
        return True

    except OSError as e:
        logger.error(f"Failed to save configuration: {e}", exc_info=True)
        return False


def load_config(session: AdminSession, path: Optional[Path] = None) -> bool:
    """
    Load configuration from the JSON file and environment into ``session``.

    Only keys matching existing dataclass fields are applied. Environment
    overrides are applied even when no file exists.

    Returns:
        True when a configuration file was read.
    """
    logger = logging.getLogger(__name__)
    path = Path(path) if path else CONFIG_PATH
    loaded = False

    if not path.exists():
        logger.info(f"No existing configuration file found at {path}")
    else:
        try:
            logger.info(f"Loading configuration from {path}")

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            log_config("Loaded Configuration", data, logger)

            for name in SECTIONS:
                section = getattr(session, name)
                for k, v in (data.get(name) or {}).items():
                    if hasattr(section, k):
                        if isinstance(v, str):
                            v = v.strip()
                        setattr(section, k, v)

            logger.debug(f"API configuration updated: base_url={session.api.base_url}")
            loaded = True

        except json.JSONDecodeError as e:
            logger.error(f"Configuration file is corrupted: {e}", exc_info=True)
        except OSError as e:
            logger.error(f"Failed to load configuration: {e}", exc_info=True)

    _apply_env_overrides(session, logger)
    return loaded


def _apply_env_overrides(session: AdminSession, logger: logging.Logger):
    for env_name, (section, attr) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "").strip()
        if value:
            setattr(getattr(session, section), attr, value)
            logger.debug(f"{section}.{attr} overridden from {env_name}")
