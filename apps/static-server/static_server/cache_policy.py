"""Cache-Control policy derived from the server flags."""

from __future__ import annotations

from dataclasses import replace

from .models import CacheOptions

NO_CACHE_HEADERS = {"Cache-Control": "no-cache"}


def compute_cache_options(cache_max_age: int | None, single_page_mode: bool = False) -> CacheOptions:
    """Translate ``--cache``/``--single`` into options for the file streamer.

    A positive ``cache_max_age`` (milliseconds) becomes the max-age. Zero turns
    the generated header off and sends ``Cache-Control: no-cache`` instead.
    Single page mode without an explicit duration never caches. Otherwise the
    streamer defaults apply.
    """

    if cache_max_age:
        return CacheOptions(max_age_ms=cache_max_age)
    if cache_max_age == 0:
        return CacheOptions(cache_control=False, headers=dict(NO_CACHE_HEADERS))
    if single_page_mode:
        return CacheOptions(max_age_ms=0)
    return CacheOptions()


def spa_root_options(options: CacheOptions) -> CacheOptions:
    """The SPA index document is never cached, whatever the general policy says."""

    return replace(options, max_age_ms=0)
