"""Request resolution: decides what a single request is answered with."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import anyio
import structlog

from . import auth, security
from .cache_policy import compute_cache_options, spa_root_options
from .files import NOT_FOUND_TEXT, guess_media_type, read_text_if_exists
from .listing import render_directory
from .mocks import MockMatcher, MockOutcome, NoRuleMatched, Served
from .models import (
    RequestContext,
    ResolutionOutcome,
    ResolvedTarget,
    SecurityRejection,
    ServeFile,
    ServeListing,
    ServeMock,
    ServeMockFailure,
    ServeNotFound,
    ServeRedirect,
    ServerConfig,
    ServeSpaRoot,
    ServeUnauthorized,
)

LOGGER = structlog.get_logger("static_server")

DirectoryRenderer = Callable[..., Awaitable[Optional[str]]]

LISTING_STYLESHEET = "listing.css"


def with_trailing_slash(raw_url: str) -> str:
    parts = urlsplit(raw_url)
    return urlunsplit(("", "", parts.path + "/", parts.query, parts.fragment))


class ResolutionEngine:
    """Turns a request into one ``ResolutionOutcome``.

    Fallback order: mock, file, directory index, directory listing, SPA root,
    404. Mocks are only consulted on the not-found and SPA-fallback branches.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        mock_matcher: MockMatcher | None = None,
        renderer: DirectoryRenderer = render_directory,
    ) -> None:
        self.config = config
        self.mocks = mock_matcher or MockMatcher(
            config.mock_rules,
            config.mock_dir,
            match_mode=config.mock_match_mode,
        )
        self._render = renderer
        self.cache_options = compute_cache_options(config.cache_max_age, config.single_page_mode)

    def authorize(self, authorization: str | None) -> ServeUnauthorized | None:
        credentials = auth.extract_credentials(authorization)
        decision = auth.check(credentials, self.config.auth_user, self.config.auth_password)
        if decision is auth.AuthDecision.DENIED:
            LOGGER.warning("auth_denied", user=credentials.name if credentials else None)
            return ServeUnauthorized()
        return None

    async def handle(self, request: RequestContext) -> ResolutionOutcome:
        if self.config.auth_enabled:
            denied = self.authorize(request.headers.get("authorization"))
            if denied is not None:
                return denied
        return await self.resolve(request)

    async def resolve(self, request: RequestContext) -> ResolutionOutcome:
        target = await security.resolve(request.pathname, self.config)
        if isinstance(target, SecurityRejection):
            LOGGER.info("path_rejected", path=request.pathname, reason=target.reason)
            return await self.not_found(request)

        if not target.exists_on_disk:
            if self.config.single_page_mode:
                return await self.spa_fallback(request)
            return await self.not_found(request)

        if target.is_directory:
            return await self.directory(request, target)

        return ServeFile(
            path=target.absolute_path,
            cache_options=self.cache_options,
            default_media_type="text/html" if self.config.single_page_mode else "text/plain",
        )

    async def directory(self, request: RequestContext, target: ResolvedTarget) -> ResolutionOutcome:
        extra_headers = dict(self.cache_options.headers)
        if not request.pathname.endswith("/"):
            return ServeRedirect(location=with_trailing_slash(request.raw_url), headers=extra_headers)

        if target.is_asset_request:
            return await self.not_found(request)

        directory = target.absolute_path
        if directory == self.config.root_dir:
            index = self.config.spa_root_document
        else:
            index = directory / "index.html"

        if await anyio.Path(index).is_file():
            options = self.cache_options
            if self.config.single_page_mode and index == self.config.spa_root_document:
                options = spa_root_options(options)
            return ServeFile(
                path=index,
                cache_options=options,
                media_type=guess_media_type(index, "text/html"),
            )

        rendered = await self._render(
            request.local_port or self.config.port,
            self.config.root_dir,
            directory,
            self.config.ignored_substrings,
            stylesheet=self._stylesheet(),
        )
        if rendered:
            return ServeListing(html=rendered, headers=extra_headers)

        if not self.config.single_page_mode:
            return await self.not_found(request)

        return ServeSpaRoot(
            path=self.config.spa_root_document,
            cache_options=spa_root_options(self.cache_options),
        )

    async def spa_fallback(self, request: RequestContext) -> ResolutionOutcome:
        options = spa_root_options(self.cache_options)
        outcome = await self.mocks.try_mock(request)
        if isinstance(outcome, NoRuleMatched):
            return ServeSpaRoot(path=self.config.spa_root_document, cache_options=options)
        return self._from_mock(outcome)

    async def not_found(self, request: RequestContext) -> ResolutionOutcome:
        if self.mocks.has_rules:
            outcome = await self.mocks.try_mock(request)
            if not isinstance(outcome, NoRuleMatched):
                return self._from_mock(outcome)

        custom = await read_text_if_exists(self.config.not_found_document)
        if custom is not None:
            return ServeNotFound(body=custom, media_type="text/html")
        return ServeNotFound(body=NOT_FOUND_TEXT)

    def _from_mock(self, outcome: MockOutcome) -> ResolutionOutcome:
        if isinstance(outcome, Served):
            return ServeMock(body=outcome.body, status=outcome.status, media_type=outcome.media_type)
        return ServeMockFailure(detail=outcome.detail)

    def _stylesheet(self) -> str | None:
        if not self.config.asset_dir:
            return None
        return f"{self.config.asset_dir.rstrip('/')}/{LISTING_STYLESHEET}"
