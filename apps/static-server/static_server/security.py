"""Path resolution and containment checks for incoming request paths."""

from __future__ import annotations

import os
import posixpath
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import unquote

import anyio

from .models import ResolvedTarget, SecurityRejection, ServerConfig


def is_ignored(pathname: str, ignored_substrings: Iterable[str]) -> bool:
    return any(item in pathname for item in ignored_substrings)


def is_within(path: str, base: str) -> bool:
    """Component-wise containment: ``/site2`` is not inside ``/site``."""

    base = base.rstrip(os.sep) or os.sep
    if path == base:
        return True
    prefix = base if base.endswith(os.sep) else base + os.sep
    return path.startswith(prefix)


def _asset_relative(pathname: str, asset_dir: str | None) -> str | None:
    """Return the path below the asset namespace when the request's parent lies inside it."""

    if not asset_dir:
        return None
    normalized = posixpath.normpath("/" + pathname.lstrip("/"))
    parent = posixpath.dirname(normalized)
    if not is_within(parent, asset_dir):
        return None
    return posixpath.relpath(normalized, asset_dir)


def _decode(path: str) -> str:
    return os.path.normpath(unquote(path))


def locate(pathname: str, config: ServerConfig) -> tuple[str, bool] | SecurityRejection:
    """Map ``pathname`` onto the filesystem without touching the disk."""

    if is_ignored(pathname, config.ignored_substrings) or is_ignored(unquote(pathname), config.ignored_substrings):
        return SecurityRejection("ignored")

    relative = _asset_relative(pathname, config.asset_dir)
    if relative is not None:
        base = os.fspath(config.assets_root)
        candidate = _decode(os.path.join(base, relative))
        is_asset_request = True
    else:
        base = os.fspath(config.root_dir)
        candidate = _decode(os.path.join(base, pathname.lstrip("/")))
        is_asset_request = False

    if "\x00" in candidate:
        return SecurityRejection("invalid")
    if not is_within(candidate, base):
        return SecurityRejection("outside_assets" if is_asset_request else "outside_root", Path(candidate))
    return candidate, is_asset_request


async def resolve(pathname: str, config: ServerConfig) -> ResolvedTarget | SecurityRejection:
    """Resolve a request path to a contained filesystem target and probe it."""

    located = locate(pathname, config)
    if isinstance(located, SecurityRejection):
        return located

    candidate, is_asset_request = located
    target = anyio.Path(candidate)
    exists = await target.exists()
    is_directory = exists and await target.is_dir()
    return ResolvedTarget(
        absolute_path=Path(candidate),
        is_directory=is_directory,
        exists_on_disk=exists,
        is_asset_request=is_asset_request,
    )
