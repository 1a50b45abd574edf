"""Mock responses resolved from ordered pattern -> file rules."""

from __future__ import annotations

import hashlib
import importlib.util
import inspect
import json
import mimetypes
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol, Sequence, Union

import anyio
import anyio.to_thread
import structlog

from .models import MockMatchMode, MockRule, RequestContext
from .security import is_within

LOGGER = structlog.get_logger("static_server")

STATUS_QUERY_PARAM = "__status__"
DYNAMIC_SUFFIX = ".py"


class MockLoadError(Exception):
    """A mock target exists but cannot produce a payload."""


@dataclass(frozen=True)
class NoRuleMatched:
    pass


@dataclass(frozen=True)
class Served:
    status: int
    body: bytes
    media_type: str


@dataclass(frozen=True)
class ServedByMockButFailed:
    detail: str


MockOutcome = Union[NoRuleMatched, Served, ServedByMockButFailed]

NO_RULE_MATCHED = NoRuleMatched()


class MockProvider(Protocol):
    async def provide(self, request: RequestContext) -> Any: ...


class StaticContentProvider:
    """Serves a text file, re-reading it only when its mtime changes."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._text: str | None = None
        self._mtime_ns: int | None = None

    async def provide(self, request: RequestContext) -> str:
        target = anyio.Path(self.path)
        stat = await target.stat()
        if self._text is None or stat.st_mtime_ns != self._mtime_ns:
            self._text = await target.read_text(encoding="utf-8")
            self._mtime_ns = stat.st_mtime_ns
        return self._text


def _import_module(path: Path) -> ModuleType:
    digest = hashlib.sha1(os.fsencode(path)).hexdigest()[:12]
    spec = importlib.util.spec_from_file_location(f"static_server_mock_{digest}", path)
    if spec is None or spec.loader is None:
        raise MockLoadError(f"Cannot import mock module {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(spec.name, None)
        raise
    return module


class DynamicModuleProvider:
    """Python mock module exposing ``provide(request)`` or a ``payload`` value.

    The module is executed once when loaded; ``provide`` runs on every request.
    """

    def __init__(self, path: Path, module: ModuleType) -> None:
        self.path = path
        self.module = module

    @classmethod
    async def load(cls, path: Path) -> "DynamicModuleProvider":
        module = await anyio.to_thread.run_sync(_import_module, path)
        return cls(path, module)

    @property
    def is_callable(self) -> bool:
        return callable(getattr(self.module, "provide", None))

    async def provide(self, request: RequestContext) -> Any:
        if self.is_callable:
            result = self.module.provide(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        if not hasattr(self.module, "payload"):
            raise MockLoadError(f"Mock module {self.path} defines neither 'provide' nor 'payload'")
        return self.module.payload


class ProviderCache:
    """Process-wide provider instances keyed by resolved file path."""

    def __init__(self) -> None:
        self._providers: dict[Path, MockProvider] = {}
        self._locks: dict[Path, anyio.Lock] = {}

    async def get(self, path: Path) -> MockProvider:
        provider = self._providers.get(path)
        if provider is not None:
            return provider
        lock = self._locks.setdefault(path, anyio.Lock())
        async with lock:
            # another task may have loaded it while we waited
            provider = self._providers.get(path)
            if provider is None:
                if path.suffix == DYNAMIC_SUFFIX:
                    provider = await DynamicModuleProvider.load(path)
                else:
                    provider = StaticContentProvider(path)
                self._providers[path] = provider
        return provider

    def __contains__(self, path: Path) -> bool:
        return path in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def clear(self) -> None:
        self._providers.clear()
        self._locks.clear()


def substitute_target(template: str, match: re.Match[str]) -> str:
    """Replace ``$0..$n`` with the match groups, first occurrence of each only."""

    target = template
    groups = (match.group(0), *match.groups())
    for index, value in enumerate(groups):
        target = target.replace(f"${index}", value or "", 1)
    return target


def resolve_mock_path(mock_dir: Path, target: str) -> Path | None:
    base = os.path.normpath(os.fspath(mock_dir))
    candidate = os.path.normpath(os.path.join(base, target.lstrip("/")))
    if not is_within(candidate, base):
        return None
    return Path(candidate)


def encode_payload(payload: Any, source: Path) -> tuple[bytes, str]:
    if isinstance(payload, str):
        media_type = None
        if source.suffix != DYNAMIC_SUFFIX:
            media_type, _ = mimetypes.guess_type(source.name)
        return payload.encode("utf-8"), media_type or "text/plain"
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload), "application/octet-stream"
    return json.dumps(payload).encode("utf-8"), "application/json"


def requested_status(request: RequestContext) -> int | None:
    raw = request.query_params.get(STATUS_QUERY_PARAM)
    if raw is None:
        return None
    try:
        status = int(raw)
    except ValueError:
        LOGGER.warning("mock_status_ignored", value=raw, reason="not an integer")
        return None
    if not 100 <= status <= 599:
        LOGGER.warning("mock_status_ignored", value=raw, reason="out of range")
        return None
    return status


class MockMatcher:
    """Applies mock rules to a request.

    By default every rule whose pattern matches is applied in order and the
    outcome of the last one is kept. ``match_mode="first"`` stops at the first
    matching rule instead.
    """

    def __init__(
        self,
        rules: Sequence[MockRule],
        mock_dir: Path,
        *,
        match_mode: MockMatchMode = "last",
        cache: ProviderCache | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._mock_dir = mock_dir
        self._match_mode = match_mode
        self.cache = cache if cache is not None else ProviderCache()

    @property
    def has_rules(self) -> bool:
        return bool(self._rules)

    async def try_mock(self, request: RequestContext) -> MockOutcome:
        status_param = requested_status(request)
        outcome: MockOutcome = NO_RULE_MATCHED
        for rule in self._rules:
            match = rule.pattern.search(request.raw_url)
            if match is None:
                continue
            status = status_param or rule.status_override or 200
            outcome = await self._apply(rule, match, request, status)
            if self._match_mode == "first":
                break
        return outcome

    async def _apply(
        self,
        rule: MockRule,
        match: re.Match[str],
        request: RequestContext,
        status: int,
    ) -> MockOutcome:
        target = substitute_target(rule.target_template, match)
        logger = LOGGER.bind(rule=rule.source, target=target, url=request.raw_url)
        logger.debug("mock_rule_matched")
        try:
            candidate = resolve_mock_path(self._mock_dir, target)
            if candidate is None:
                logger.warning("mock_target_outside_mock_dir", mock_dir=str(self._mock_dir))
                return NO_RULE_MATCHED

            if await anyio.Path(candidate).is_file():
                source = candidate
                provider = await self.cache.get(candidate)
            else:
                swapped = candidate.with_suffix(DYNAMIC_SUFFIX) if candidate.suffix == ".json" else None
                if swapped is None or not await anyio.Path(swapped).is_file():
                    logger.debug("mock_target_missing", path=str(candidate))
                    return NO_RULE_MATCHED
                source = candidate
                provider = await self.cache.get(swapped)
                if not isinstance(provider, DynamicModuleProvider) or not provider.is_callable:
                    raise MockLoadError(f"Mock module {swapped} must define a callable 'provide'")

            payload = await provider.provide(request)
            body, media_type = encode_payload(payload, source)
        except Exception as exc:
            logger.exception("mock_load_failed")
            return ServedByMockButFailed(detail=f"{type(exc).__name__}: {exc}")

        logger.info("mock_served", status=status, bytes=len(body))
        return Served(status=status, body=body, media_type=media_type)
