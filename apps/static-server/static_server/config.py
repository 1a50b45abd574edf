"""Startup configuration loading for the static server."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import DEFAULT_ASSET_DIR, DEFAULT_IGNORED, MockMatchMode, MockRule, ServerConfig

USER_ENV = "SERVE_USER"
PASSWORD_ENV = "SERVE_PASSWORD"
ASSET_DIR_ENV = "ASSET_DIR"


class ConfigurationError(Exception):
    """Raised when the server cannot start with the provided settings."""


def normalize_basename(value: str | None) -> str:
    """Return ``value`` with a leading slash and without a trailing slash ("" stays "")."""

    if not value:
        return ""
    if not value.startswith("/"):
        value = "/" + value
    if value.endswith("/"):
        value = value[:-1]
    return value


def parse_ignore(values: Iterable[str] | None) -> tuple[str, ...]:
    """Merge the default ignored substrings with comma separated extras."""

    ignored = list(DEFAULT_IGNORED)
    for raw in values or ():
        for item in raw.split(","):
            item = item.strip()
            if item and item not in ignored:
                ignored.append(item)
    return tuple(ignored)


def build_mock_rules(mapping: Mapping[str, str] | Iterable[Mapping[str, Any]]) -> tuple[MockRule, ...]:
    """Compile mock rules, keeping the configured order."""

    if isinstance(mapping, Mapping):
        pairs = [(str(pattern), target) for pattern, target in mapping.items()]
    else:
        pairs = []
        for item in mapping:
            if not isinstance(item, Mapping) or "pattern" not in item or "target" not in item:
                raise ConfigurationError("Mock rule list entries must define 'pattern' and 'target'")
            pairs.append((str(item["pattern"]), item["target"]))

    rules: list[MockRule] = []
    for pattern, target in pairs:
        if not isinstance(target, str):
            raise ConfigurationError(f"Mock target for {pattern!r} must be a string")
        try:
            rules.append(MockRule.from_config(pattern, target))
        except re.error as exc:
            raise ConfigurationError(f"Mock pattern {pattern!r} is not a valid regular expression: {exc}") from exc
    return tuple(rules)


def load_mock_rules(mock_config: str | None = None, mock_file: Path | None = None) -> tuple[MockRule, ...]:
    """Load rules from an inline JSON object and/or a YAML/JSON rule file (file rules first)."""

    rules: list[MockRule] = []
    if mock_file is not None:
        if not mock_file.exists():
            raise ConfigurationError(f"Mock rule file {mock_file} does not exist")
        text = mock_file.read_text(encoding="utf-8")
        try:
            payload = json.loads(text) if mock_file.suffix.lower() == ".json" else yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Mock rule file {mock_file} could not be parsed: {exc}") from exc
        if payload is None:
            payload = {}
        if isinstance(payload, Mapping) and "rules" in payload:
            payload = payload["rules"]
        if not isinstance(payload, (Mapping, list)):
            raise ConfigurationError(f"Mock rule file {mock_file} must contain a mapping or a list")
        rules.extend(build_mock_rules(payload))
    if mock_config:
        try:
            payload = json.loads(mock_config)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"--mock-config is not valid JSON: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise ConfigurationError("--mock-config must be a JSON object mapping patterns to targets")
        rules.extend(build_mock_rules(payload))
    return tuple(rules)


def load_config(
    root_dir: Path,
    *,
    single: bool = False,
    basename: str | None = None,
    cors: bool = False,
    auth: bool = False,
    cache: int | None = None,
    ignore: Iterable[str] | None = None,
    mock_config: str | None = None,
    mock_file: Path | None = None,
    mock_dir: Path | None = None,
    mock_match_mode: MockMatchMode = "last",
    host: str = "0.0.0.0",
    port: int = 5000,
    environ: Mapping[str, str] | None = None,
) -> ServerConfig:
    """Build the immutable server configuration.

    This is the only place where the process environment is consulted:
    ``SERVE_USER``/``SERVE_PASSWORD`` are required when ``auth`` is enabled and
    ``ASSET_DIR`` overrides the URL prefix of the internal asset namespace.
    """

    env = os.environ if environ is None else environ

    root = root_dir.expanduser().resolve()
    if not root.is_dir():
        raise ConfigurationError(f"Root directory {root_dir} does not exist or is not a directory")

    user = password = None
    if auth:
        user = env.get(USER_ENV)
        password = env.get(PASSWORD_ENV)
        if not user or not password:
            raise ConfigurationError(
                f'The environment variables "{USER_ENV}" and/or "{PASSWORD_ENV}" are missing!'
            )

    asset_dir = env.get(ASSET_DIR_ENV) or DEFAULT_ASSET_DIR
    asset_dir = os.path.normpath("/" + asset_dir.strip("/"))

    rules = load_mock_rules(mock_config=mock_config, mock_file=mock_file)

    try:
        return ServerConfig(
            root_dir=root,
            asset_dir=asset_dir,
            basename=normalize_basename(basename) if single else "",
            single_page_mode=single,
            cors_enabled=cors,
            auth_enabled=auth,
            auth_user=user,
            auth_password=password,
            cache_max_age=cache,
            mock_rules=rules,
            mock_dir=(mock_dir or Path.cwd()).expanduser().resolve(),
            mock_match_mode=mock_match_mode,
            ignored_substrings=parse_ignore(ignore),
            host=host,
            port=port,
        )
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
