"""Async file access and the file-streaming response collaborator."""

from __future__ import annotations

import mimetypes
from collections.abc import Mapping
from pathlib import Path

import anyio
from starlette.datastructures import Headers
from starlette.responses import FileResponse, PlainTextResponse, Response

from .models import CacheOptions

mimetypes.add_type("application/javascript", ".mjs")
mimetypes.add_type("application/wasm", ".wasm")
mimetypes.add_type("application/json", ".map")
mimetypes.add_type("image/svg+xml", ".svg")

NOT_FOUND_TEXT = "Not Found"


def guess_media_type(path: Path, default: str = "text/plain") -> str:
    media_type, _ = mimetypes.guess_type(path.name)
    return media_type or default


async def read_text_if_exists(path: Path) -> str | None:
    target = anyio.Path(path)
    try:
        return await target.read_text(encoding="utf-8")
    except OSError:
        return None


def _etag_matches(response_etag: str | None, if_none_match: str | None) -> bool:
    if not response_etag or not if_none_match:
        return False
    if if_none_match.strip() == "*":
        return True
    wanted = response_etag.strip().removeprefix("W/")
    return any(tag.strip().removeprefix("W/") == wanted for tag in if_none_match.split(","))


async def stream_file(
    path: Path,
    *,
    cache_options: CacheOptions,
    media_type: str | None = None,
    default_media_type: str = "text/plain",
    headers: Mapping[str, str] | None = None,
    request_headers: Headers | None = None,
) -> Response:
    """Stream ``path`` with the given cache policy; a vanished file is a plain 404."""

    target = anyio.Path(path)
    if not await target.is_file():
        return PlainTextResponse(NOT_FOUND_TEXT, status_code=404)
    stat_result = await target.stat()

    response_headers = dict(headers or {})
    response_headers.update(cache_options.headers)
    cache_value = cache_options.header_value()
    if cache_value is not None:
        response_headers["Cache-Control"] = cache_value

    response = FileResponse(
        path,
        media_type=media_type or guess_media_type(path, default_media_type),
        headers=response_headers,
        stat_result=stat_result,
    )
    if request_headers is not None and _etag_matches(
        response.headers.get("etag"), request_headers.get("if-none-match")
    ):
        kept = {
            key: value
            for key, value in response.headers.items()
            if key in {"cache-control", "etag", "last-modified", "vary"}
        }
        return Response(status_code=304, headers=kept)
    return response
