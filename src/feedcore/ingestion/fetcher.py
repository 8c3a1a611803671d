"""HTTP(S) document fetching with httpx."""

from __future__ import annotations

import logging
import platform
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING

import httpx

from feedcore import __version__
from feedcore.errors import ProbeError
from feedcore.ingestion.interfaces import FetchOptions, FetchResult, FetchStatus, UrlFetcher

if TYPE_CHECKING:
    from feedcore.config import Config

logger = logging.getLogger(__name__)


def user_agent(config: Config) -> str:
    """Configured user agent, or ``feedcore/<version> (<os> <arch>)``."""
    if config.user_agent:
        return config.user_agent
    return f"feedcore/{__version__} ({platform.system()} {platform.machine()})"


def build_fetch_options(config: Config) -> FetchOptions:
    """Transport options for every request, proxy settings only if enabled."""
    proxy = proxy_auth = None
    if config.use_proxy:
        proxy = config.proxy or None
        proxy_auth = config.proxy_auth or None
    return FetchOptions(
        timeout=config.fetch_timeout_seconds,
        proxy=proxy,
        proxy_auth=proxy_auth,
        user_agent=user_agent(config),
    )


def proxy_url(options: FetchOptions) -> str | None:
    """Build an httpx proxy URL, embedding ``user:password`` credentials."""
    if not options.proxy:
        return None
    scheme, sep, rest = options.proxy.partition("://")
    if not sep:
        scheme, rest = "http", options.proxy
    if options.proxy_auth:
        rest = f"{options.proxy_auth}@{rest}"
    return f"{scheme}://{rest}"


def _parse_last_modified(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(parsedate_to_datetime(value).timestamp())
    except (TypeError, ValueError):
        logger.debug("Unparseable Last-Modified header %r", value)
        return None


class HttpFetcher(UrlFetcher):
    """UrlFetcher backed by httpx, one blocking request per call."""

    def _request(self, method: str, url: str, options: FetchOptions) -> httpx.Response:
        kwargs = {}
        proxy = proxy_url(options)
        if proxy:
            kwargs["proxy"] = proxy
        return httpx.request(
            method,
            url,
            headers={"User-Agent": options.user_agent},
            timeout=options.timeout,
            follow_redirects=True,
            **kwargs,
        )

    def fetch(self, url: str, options: FetchOptions) -> FetchResult:
        try:
            response = self._request("GET", url, options)
        except httpx.HTTPError:
            logger.exception("HTTP error fetching %s", url)
            return FetchResult(b"", FetchStatus.DOWNLOAD_ERROR)
        except OSError:
            logger.exception("System error fetching %s", url)
            return FetchResult(b"", FetchStatus.POSIX_ERROR)

        if response.status_code == 304:
            return FetchResult(b"", FetchStatus.NOT_MODIFIED)
        if response.status_code >= 400:
            logger.error("Fetching %s returned HTTP %d", url, response.status_code)
            return FetchResult(b"", FetchStatus.DOWNLOAD_ERROR)
        if not response.content:
            return FetchResult(b"", FetchStatus.NO_DOCUMENT)
        return FetchResult(response.content, FetchStatus.OK)

    def probe_last_modified(self, url: str, options: FetchOptions) -> int | None:
        try:
            response = self._request("HEAD", url, options)
        except (httpx.HTTPError, OSError) as exc:
            raise ProbeError(f"probing {url} failed: {exc}") from exc
        if response.status_code >= 400:
            logger.debug("HEAD %s returned HTTP %d", url, response.status_code)
            return None
        return _parse_last_modified(response.headers.get("Last-Modified"))
