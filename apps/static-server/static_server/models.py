"""Configuration, request and outcome models for the static server."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Union
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, Field

ASSETS_ROOT = Path(__file__).resolve().parent / "assets"
DEFAULT_ASSET_DIR = "/__static_server_assets"
DEFAULT_IGNORED: tuple[str, ...] = (".DS_Store", ".git/")

MockMatchMode = Literal["last", "first"]


class MockRule(BaseModel):
    """Pattern -> mock target rule, evaluated against the raw request URL."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    pattern: re.Pattern[str]
    target_template: str
    status_override: int | None = None

    @classmethod
    def from_config(cls, pattern: str, target: str) -> "MockRule":
        """Build a rule from its configured form; ``target`` may carry a ``|status`` suffix."""

        template, separator, suffix = target.partition("|")
        status: int | None = None
        if separator and suffix.strip().isdigit():
            status = int(suffix.strip())
        return cls(pattern=re.compile(pattern), target_template=template, status_override=status)

    @property
    def source(self) -> str:
        return self.pattern.pattern


class ServerConfig(BaseModel):
    """Immutable process-wide configuration consumed by the resolution engine."""

    model_config = ConfigDict(frozen=True)

    root_dir: Path
    asset_dir: str | None = DEFAULT_ASSET_DIR
    assets_root: Path = ASSETS_ROOT
    basename: str = ""
    single_page_mode: bool = False
    cors_enabled: bool = False
    auth_enabled: bool = False
    auth_user: str | None = None
    auth_password: str | None = Field(default=None, repr=False)
    cache_max_age: int | None = None
    mock_rules: tuple[MockRule, ...] = ()
    mock_dir: Path = Field(default_factory=Path.cwd)
    mock_match_mode: MockMatchMode = "last"
    ignored_substrings: tuple[str, ...] = DEFAULT_IGNORED
    host: str = "0.0.0.0"
    port: int = 5000

    @property
    def spa_basename(self) -> str:
        """Base path for the SPA index document; only honoured in single page mode."""

        return self.basename if self.single_page_mode else ""

    @property
    def spa_root_document(self) -> Path:
        return self.root_dir / self.spa_basename.lstrip("/") / "index.html"

    @property
    def not_found_document(self) -> Path:
        return self.root_dir / "404.html"


class RequestContext(BaseModel):
    """Per-request view of the incoming HTTP request."""

    model_config = ConfigDict(frozen=True)

    raw_url: str
    pathname: str
    query_params: dict[str, str] = Field(default_factory=dict)
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    local_port: int | None = None

    @classmethod
    def from_url(cls, raw_url: str, **kwargs: Any) -> "RequestContext":
        parts = urlsplit(raw_url)
        return cls(
            raw_url=raw_url,
            pathname=parts.path or "/",
            query_params=dict(parse_qsl(parts.query, keep_blank_values=True)),
            **kwargs,
        )


@dataclass(frozen=True)
class ResolvedTarget:
    absolute_path: Path
    is_directory: bool
    exists_on_disk: bool
    is_asset_request: bool


@dataclass(frozen=True)
class SecurityRejection:
    reason: str
    absolute_path: Path | None = None


@dataclass(frozen=True)
class CacheOptions:
    """Cache behaviour handed to the file-streaming collaborator."""

    cache_control: bool = True
    max_age_ms: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    def header_value(self) -> str | None:
        if not self.cache_control:
            return None
        return f"public, max-age={max(self.max_age_ms, 0) // 1000}"


@dataclass(frozen=True)
class ServeMock:
    body: bytes
    status: int
    media_type: str


@dataclass(frozen=True)
class ServeMockFailure:
    detail: str
    status: int = 502


@dataclass(frozen=True)
class ServeFile:
    path: Path
    cache_options: CacheOptions
    default_media_type: str = "text/plain"
    media_type: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServeListing:
    html: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServeRedirect:
    location: str
    status: int = 302
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServeSpaRoot:
    path: Path
    cache_options: CacheOptions
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServeNotFound:
    body: str
    media_type: str = "text/plain"
    status: int = 404


@dataclass(frozen=True)
class ServeUnauthorized:
    body: str = "Access Denied"
    status: int = 401


ResolutionOutcome = Union[
    ServeMock,
    ServeMockFailure,
    ServeFile,
    ServeListing,
    ServeRedirect,
    ServeSpaRoot,
    ServeNotFound,
    ServeUnauthorized,
]
