from __future__ import annotations

import configparser
from pathlib import Path

from vendortal_cli.exceptions import ConfigError
from vendortal_cli.models.config import DEFAULT_SITE_URL, AppConfig

CONFIG_FILENAME = ".vendortal-cli.ini"
_SECTION = "vendortal"
_REQUIRED_KEYS = ("api_url", "api_key", "access_token", "user_id")


def config_exists(directory: Path) -> bool:
    return (directory / CONFIG_FILENAME).is_file()


def write_config(directory: Path, config: AppConfig) -> None:
    cp = configparser.ConfigParser()
    cp[_SECTION] = {
        "api_url": config.api_url,
        "api_key": config.api_key,
        "access_token": config.access_token,
        "user_id": config.user_id,
        "site_url": config.site_url,
    }
    path = directory / CONFIG_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        cp.write(f)


def read_config(directory: Path) -> AppConfig:
    path = directory / CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError(
            "Configuration not found. Run vendortal-cli --init first."
        )

    cp = configparser.ConfigParser()
    try:
        cp.read(str(path), encoding="utf-8")
    except configparser.Error as exc:
        raise ConfigError(
            f"Invalid configuration format in {CONFIG_FILENAME}. "
            "Run vendortal-cli --init to reconfigure."
        ) from exc

    if not cp.has_section(_SECTION):
        raise ConfigError(
            f"Invalid configuration: missing [{_SECTION}] section in {CONFIG_FILENAME}."
        )

    for key in _REQUIRED_KEYS:
        if not cp.has_option(_SECTION, key) or not cp.get(_SECTION, key).strip():
            raise ConfigError(
                f"Invalid configuration: missing or empty '{key}' in {CONFIG_FILENAME}. "
                "Run vendortal-cli --init to reconfigure."
            )

    return AppConfig(
        api_url=cp.get(_SECTION, "api_url"),
        api_key=cp.get(_SECTION, "api_key"),
        access_token=cp.get(_SECTION, "access_token"),
        user_id=cp.get(_SECTION, "user_id"),
        site_url=cp.get(_SECTION, "site_url", fallback=DEFAULT_SITE_URL),
    )
