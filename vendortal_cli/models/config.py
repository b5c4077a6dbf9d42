from __future__ import annotations

from dataclasses import dataclass

from vendortal_cli.exceptions import ConfigError

DEFAULT_SITE_URL = "https://vendortal.vercel.app"


@dataclass
class AppConfig:
    api_url: str
    api_key: str
    access_token: str
    user_id: str
    site_url: str = DEFAULT_SITE_URL

    def __post_init__(self) -> None:
        if not self.api_url:
            raise ConfigError("API URL cannot be empty.")
        if not self.api_url.endswith("/"):
            self.api_url = self.api_url + "/"
        if not self.api_key:
            raise ConfigError("API key cannot be empty.")
        if not self.access_token:
            raise ConfigError("Access token cannot be empty.")
        if not self.user_id:
            raise ConfigError("User ID cannot be empty.")
        self.site_url = (self.site_url or DEFAULT_SITE_URL).rstrip("/")
