"""SSRF-safe HTTP fetching of recipe pages and images."""

import asyncio
import ipaddress
import logging
import socket
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx

from recipebox.config import Settings, get_settings
from recipebox.errors import FetchError, FetchErrorCode

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Awaitable[list[str]]]

BLOCKED_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}

# Browser-like headers to avoid being blocked
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "nl-NL,nl;q=0.9,en-US;q=0.8,en;q=0.7",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


@dataclass
class FetchedResource:
    """Body and final location of a fetched resource."""

    url: str
    content: bytes
    content_type: str
    encoding: str | None = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


async def resolve_host(hostname: str) -> list[str]:
    """Resolve a hostname to all of its A/AAAA addresses."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return list({info[4][0] for info in infos})


def is_blocked_address(address: str) -> bool:
    """Check if an IP address is private, loopback or link-local."""
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == network.version and ip in network for network in BLOCKED_NETWORKS)


def classify_status(status_code: int) -> FetchErrorCode | None:
    """Map a non-success HTTP status to a fetch error code."""
    if status_code in (401, 403):
        return FetchErrorCode.ACCESS_DENIED
    if status_code == 404:
        return FetchErrorCode.NOT_FOUND
    if 400 <= status_code < 500:
        return FetchErrorCode.CLIENT_ERROR
    if status_code >= 500:
        return FetchErrorCode.SERVER_ERROR
    return None


class SecureHtmlFetcher:
    """Fetch untrusted URLs without reaching internal networks.

    Redirects are followed manually so that every hop is validated again,
    and the whole fetch (all hops) shares one deadline.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        resolver: Resolver | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.timeout = self.settings.recipe_fetch_timeout_seconds
        self.max_bytes = self.settings.recipe_fetch_max_bytes
        self.max_redirects = self.settings.recipe_fetch_max_redirects
        self._transport = transport
        self._resolver = resolver or resolve_host
        self._host_cache: dict[str, tuple[float, bool]] = {}

    async def fetch(self, url: str) -> str:
        """Fetch an HTML page and return its decoded text."""
        resource = await self.fetch_resource(url, HTML_CONTENT_TYPES)
        return resource.text

    async def fetch_resource(
        self,
        url: str,
        allowed_types: set[str] | None = None,
        type_prefix: str | None = None,
        max_bytes: int | None = None,
    ) -> FetchedResource:
        """Fetch any resource under the SSRF, size and timeout policy.

        Args:
            url: Absolute http(s) URL
            allowed_types: Exact media types to accept (missing header allowed)
            type_prefix: Media type prefix to require instead, e.g. "image/"
            max_bytes: Size cap, defaults to the configured page cap
        """
        try:
            async with asyncio.timeout(self.timeout):
                return await self._fetch_following_redirects(
                    url, allowed_types, type_prefix, max_bytes or self.max_bytes
                )
        except TimeoutError as e:
            raise FetchError(
                FetchErrorCode.FETCH_TIMEOUT, f"Timed out after {self.timeout:.0f}s fetching {url}"
            ) from e

    async def validate_url(self, url: str) -> None:
        """Reject non-http(s) URLs and hosts resolving to internal addresses."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise FetchError(FetchErrorCode.INVALID_URL, f"Unsupported URL scheme: {parsed.scheme!r}")
        hostname = parsed.hostname
        if not hostname:
            raise FetchError(FetchErrorCode.INVALID_URL, "URL has no hostname")

        if not await self._is_host_allowed(hostname):
            raise FetchError(
                FetchErrorCode.PRIVATE_ADDRESS, f"Host {hostname} resolves to a private address"
            )

    async def _is_host_allowed(self, hostname: str) -> bool:
        now = time.monotonic()
        cached = self._host_cache.get(hostname)
        if cached and cached[0] > now:
            return cached[1]

        try:
            ipaddress.ip_address(hostname)
            addresses = [hostname]
        except ValueError:
            try:
                addresses = await self._resolver(hostname)
            except OSError as e:
                # Not an SSRF signal; the request itself will fail
                logger.info(f"DNS lookup failed for {hostname}: {e}")
                return True

        allowed = not any(is_blocked_address(address) for address in addresses)
        self._host_cache[hostname] = (now + self.settings.host_validation_cache_seconds, allowed)
        return allowed

    async def _fetch_following_redirects(
        self,
        url: str,
        allowed_types: set[str] | None,
        type_prefix: str | None,
        max_bytes: int,
    ) -> FetchedResource:
        current_url = url
        headers = dict(BROWSER_HEADERS)
        redirects = 0

        async with httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=False,
            timeout=self.timeout,
        ) as client:
            while True:
                await self.validate_url(current_url)
                try:
                    async with client.stream("GET", current_url, headers=headers) as response:
                        if 300 <= response.status_code < 400:
                            location = response.headers.get("location")
                            if not location:
                                raise FetchError(
                                    FetchErrorCode.FETCH_FAILED,
                                    f"Redirect ({response.status_code}) without Location header",
                                )
                            if redirects >= self.max_redirects:
                                raise FetchError(
                                    FetchErrorCode.TOO_MANY_REDIRECTS,
                                    f"Too many redirects (more than {self.max_redirects})",
                                )
                            redirects += 1
                            headers["Referer"] = current_url
                            headers["Sec-Fetch-Site"] = "cross-site"
                            current_url = urljoin(current_url, location)
                            logger.debug(f"Following redirect {redirects} to {current_url}")
                            continue

                        error_code = classify_status(response.status_code)
                        if error_code is not None:
                            raise FetchError(
                                error_code, f"HTTP {response.status_code} fetching {current_url}"
                            )

                        content_type = self._check_content_type(response, allowed_types, type_prefix)
                        content = await self._read_body(response, max_bytes)
                        return FetchedResource(
                            url=current_url,
                            content=content,
                            content_type=content_type,
                            encoding=response.charset_encoding,
                        )
                except httpx.TimeoutException as e:
                    raise FetchError(
                        FetchErrorCode.FETCH_TIMEOUT, f"Timed out fetching {current_url}"
                    ) from e
                except httpx.HTTPError as e:
                    raise FetchError(
                        FetchErrorCode.FETCH_FAILED, f"Failed to fetch {current_url}: {e}"
                    ) from e

    @staticmethod
    def _check_content_type(
        response: httpx.Response,
        allowed_types: set[str] | None,
        type_prefix: str | None,
    ) -> str:
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if type_prefix is not None:
            if not content_type.startswith(type_prefix):
                raise FetchError(
                    FetchErrorCode.UNSUPPORTED_CONTENT_TYPE,
                    f"Unsupported content type: {content_type or 'none'}",
                )
        elif allowed_types is not None and content_type and content_type not in allowed_types:
            raise FetchError(
                FetchErrorCode.UNSUPPORTED_CONTENT_TYPE,
                f"Unsupported content type: {content_type}",
            )
        return content_type

    @staticmethod
    async def _read_body(response: httpx.Response, max_bytes: int) -> bytes:
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise FetchError(
                FetchErrorCode.RESPONSE_TOO_LARGE,
                f"Response too large: {declared} bytes (max {max_bytes})",
            )

        chunks: list[bytes] = []
        total = 0
        async for chunk in response.aiter_bytes():
            total += len(chunk)
            if total > max_bytes:
                raise FetchError(
                    FetchErrorCode.RESPONSE_TOO_LARGE,
                    f"Response exceeded {max_bytes} bytes",
                )
            chunks.append(chunk)
        return b"".join(chunks)
