"""HTML directory listings."""

from __future__ import annotations

import html
import os
import posixpath
from collections.abc import Iterable
from pathlib import Path
from string import Template
from urllib.parse import quote

import anyio
import structlog

LOGGER = structlog.get_logger("static_server")

PAGE_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Files within ${title}</title>
  ${stylesheet}
</head>
<body>
  <main>
    <h1>Index of <span class="path">${title}</span></h1>
    <ul class="entries">
      ${entries}
    </ul>
  </main>
  <footer>Served on port ${port}</footer>
</body>
</html>
"""
)

ENTRY_TEMPLATE = Template('<li class="${kind}"><a href="${href}" title="${label}">${label}</a></li>')


def _entry(href: str, label: str, kind: str) -> str:
    return ENTRY_TEMPLATE.substitute(href=html.escape(href), label=html.escape(label), kind=kind)


async def render_directory(
    port: int | None,
    root_dir: Path,
    target_dir: Path,
    ignored_substrings: Iterable[str],
    *,
    stylesheet: str | None = None,
) -> str | None:
    """Render ``target_dir`` as an HTML page, or ``None`` when it cannot be listed."""

    ignored = tuple(ignored_substrings)
    relative = os.path.relpath(target_dir, root_dir)
    url_path = "/" if relative == "." else "/" + "/".join(Path(relative).parts) + "/"

    directories: list[str] = []
    files: list[str] = []
    try:
        async for child in anyio.Path(target_dir).iterdir():
            name = child.name
            if any(item in name or item.rstrip("/") == name for item in ignored):
                continue
            if await child.is_dir():
                directories.append(name)
            else:
                files.append(name)
    except OSError as exc:
        LOGGER.warning("listing_failed", directory=str(target_dir), error=str(exc))
        return None

    entries: list[str] = []
    if url_path != "/":
        parent = posixpath.dirname(url_path.rstrip("/"))
        entries.append(_entry(parent if parent.endswith("/") else parent + "/", "../", "parent"))
    for name in sorted(directories, key=str.lower):
        entries.append(_entry(url_path + quote(name) + "/", name + "/", "directory"))
    for name in sorted(files, key=str.lower):
        entries.append(_entry(url_path + quote(name), name, "file"))

    link = f'<link rel="stylesheet" href="{html.escape(stylesheet)}">' if stylesheet else ""
    return PAGE_TEMPLATE.substitute(
        title=html.escape(url_path),
        stylesheet=link,
        entries="\n      ".join(entries),
        port=port if port is not None else "",
    )
