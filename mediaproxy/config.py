from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 10000

    # Origin: remote base URL, or a local directory when origin_root is set
    origin_base_url: str = "https://najuzi.com/webapp/MobileApp/"
    origin_root: str = ""

    # Directory tree settings
    tree_source: Literal["json", "html", "local"] = "json"
    tree_url: str = ""
    tree_cache_seconds: float = 0.0
    html_search_depth: int = 4

    # Hosts this service is reachable under (for unwrapping proxied URLs)
    self_hosts: list[str] = []

    fetch_timeout: float = 10.0

    encryption_passphrase: str = ""
    encryption_mode: Literal["cbc", "ctr"] = "ctr"

    listing_extensions: list[str] = []
    file_extensions: list[str] = ["pdf", "mp4", "docx"]

    access_token: str = ""
    cors_origins: list[str] = ["*"]

    class Config:
        env_file = ".env"

    @field_validator("origin_base_url")
    @classmethod
    def _check_origin(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("origin_base_url must be an http(s) URL")
        return value.rstrip("/") + "/"

    @field_validator("listing_extensions", "file_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.strip().lstrip(".").lower() for ext in value if ext.strip()]

    @field_validator("self_hosts")
    @classmethod
    def _normalize_hosts(cls, value: list[str]) -> list[str]:
        return [h.strip().lower() for h in value if h.strip()]

    @model_validator(mode="after")
    def _check_local_root(self) -> "Settings":
        if self.tree_source == "local" and not self.origin_root:
            raise ValueError("tree_source 'local' requires origin_root")
        if self.origin_root and not Path(self.origin_root).is_dir():
            raise ValueError(f"origin_root {self.origin_root!r} is not a directory")
        return self

    @property
    def origin_host(self) -> str:
        return urlsplit(self.origin_base_url).netloc.lower()

    @property
    def origin_path(self) -> str:
        """Base path of the origin, always with a trailing slash."""
        return urlsplit(self.origin_base_url).path or "/"

    @property
    def directory_json_url(self) -> str:
        return self.tree_url or f"{self.origin_base_url}directory.json"


settings = Settings()
