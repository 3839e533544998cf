"""
Configuration and audit logging for TempShare
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml

CONFIG_DIR = Path(os.environ.get("TEMPSHARE_HOME", Path.home() / ".tempshare"))
CONFIG_FILE = CONFIG_DIR / "config.yaml"
STORE_FILE = CONFIG_DIR / "store.bin"
MASTER_KEY_FILE = CONFIG_DIR / "master.key"
AUDIT_LOG_FILE = CONFIG_DIR / "audit.log"

ADMIN_PASSWORD_ENV = "TEMPSHARE_ADMIN_PASSWORD"

DEFAULT_CONFIG = {
    "host": "0.0.0.0",
    "port": 8787,
    "persistence": True,
    "store_file": str(STORE_FILE),
    "max_content_bytes": 10 * 1024,
    "default_expiry_hours": 24,
    "allowed_expiry_hours": [1, 6, 24, 168],
    "rate_limit_requests": 10,
    "rate_limit_window_seconds": 60,
    "client_ip_header": "X-Forwarded-For",
    "cleanup_interval_minutes": 10,
    "admin_password": None,
    "site_name": "TempShare",
}


def setup_logging(log_file: Optional[Path] = AUDIT_LOG_FILE) -> logging.Logger:
    """Configure audit logging"""
    logger = logging.getLogger("tempshare")
    logger.setLevel(logging.INFO)
    logger.propagate = False  # Keep audit lines out of the uvicorn logger

    if log_file is None:
        return logger

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)

        # Log format: timestamp | level | message
        formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
        file_handler.setFormatter(formatter)

        # Remove existing handlers to avoid duplicates
        logger.handlers.clear()
        logger.addHandler(file_handler)

        try:
            os.chmod(log_file, 0o600)
        except OSError:
            pass
    except OSError as e:
        print(f"Warning: Failed to setup file logging: {e}", flush=True)

    return logger


def load_config(config_file: Path = CONFIG_FILE) -> dict:
    """Load configuration from the YAML file, writing defaults on first run"""
    config_file.parent.mkdir(parents=True, exist_ok=True)

    if config_file.exists():
        with open(config_file, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        config = {**DEFAULT_CONFIG, **loaded}
    else:
        with open(config_file, 'w') as f:
            yaml.safe_dump(DEFAULT_CONFIG, f)
        config = dict(DEFAULT_CONFIG)

    # The hosting environment wins over the file for the admin secret
    env_secret = os.environ.get(ADMIN_PASSWORD_ENV)
    if env_secret:
        config["admin_password"] = env_secret

    return config
