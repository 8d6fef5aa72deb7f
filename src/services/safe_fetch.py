"""SSRF-safe outbound fetch with size, time and redirect bounds.

The fetcher never raises to its caller (other than task cancellation):
every failure is returned as a :class:`FetchError` whose ``reason`` is one
of a fixed set of categories, so callers can branch without parsing
``details``.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
import socket
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal, TypeGuard
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from core.error_handler import StructuredLogger
from services.url_safety import FetchPolicy, is_blocked_ip, validate_url


logger = StructuredLogger(__name__)

FetchErrorReason = Literal[
    "SSRF-check-failed",
    "HTTP-error",
    "timeout",
    "content-too-large",
    "no-body",
    "fetch-error",
]

# Regex-based extraction: best effort text for ingestion, not an HTML parser
# and not a sanitizer for rendering untrusted markup.
_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TITLE_BLOCK_RE = re.compile(r"<title[^>]*>[\s\S]*?</title>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")

MAX_EXTRACTED_LINKS = 200


@dataclass(frozen=True)
class FetchResult:
    url: str
    title: str
    content: str
    content_hash: str
    fetched_at: datetime
    status_code: int
    final_url: str | None = None
    description: str | None = None
    links: tuple[str, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class FetchError:
    url: str
    reason: FetchErrorReason
    details: str | None = None


def is_fetch_error(result: FetchResult | FetchError) -> TypeGuard[FetchError]:
    return isinstance(result, FetchError)


def sanitize_html(html: str) -> str:
    """Reduce an HTML document to whitespace-normalized plain text.

    Order matters and is part of the content hash contract: script blocks,
    style blocks and the title element are removed, remaining tags become
    spaces, then whitespace runs collapse to a single space.
    """
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TITLE_BLOCK_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text)
    return text.strip()


def extract_title(html: str, url: str) -> str:
    match = _TITLE_RE.search(html)
    if match:
        title = match.group(1).strip()
        if title:
            return title
    return urlsplit(url).hostname or url


def compute_content_hash(content: str) -> str:
    """SHA-256 hex digest of sanitized text (UTF-8)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _extract_page_metadata(
    html: str, base_url: str
) -> tuple[str | None, tuple[str, ...]]:
    """Return the meta description and absolute http(s) links of a page."""
    soup = BeautifulSoup(html, "html.parser")

    description: str | None = None
    meta = soup.find("meta", attrs={"name": re.compile(r"^description$", re.I)})
    if meta is not None:
        value = meta.get("content")
        if isinstance(value, str) and value.strip():
            description = _WHITESPACE_RE.sub(" ", value).strip()

    links: list[str] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if not isinstance(href, str):
            continue
        absolute = urljoin(base_url, href.strip())
        if urlsplit(absolute).scheme not in ("http", "https") or absolute in seen:
            continue
        seen.add(absolute)
        links.append(absolute)
        if len(links) >= MAX_EXTRACTED_LINKS:
            break

    return description, tuple(links)


class _BodyTooLarge(Exception):
    pass


class SafeFetcher:
    """Bounded HTTP GET against allowlisted targets.

    Args:
        policy: Immutable fetch policy captured for the fetcher's lifetime.
        transport: Optional httpx transport (tests inject ``MockTransport``).
    """

    def __init__(
        self,
        policy: FetchPolicy,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.policy = policy
        self._transport = transport

    async def fetch(self, url: str) -> FetchResult | FetchError:
        outcome = validate_url(url, self.policy)
        if not outcome.valid:
            logger.warning(
                "Fetch blocked by SSRF check",
                url=url,
                rejection=outcome.reason,
                details=outcome.message,
            )
            return FetchError(
                url=url, reason="SSRF-check-failed", details=outcome.message
            )

        try:
            async with asyncio.timeout(self.policy.timeout_seconds):
                return await self._fetch_validated(url)
        except (TimeoutError, httpx.TimeoutException):
            logger.warning(
                "Fetch timed out", url=url, timeout_ms=self.policy.fetch_timeout_ms
            )
            return FetchError(
                url=url,
                reason="timeout",
                details=f"Request exceeded {self.policy.fetch_timeout_ms}ms",
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Fetch failed",
                url=url,
                exception_type=exc.__class__.__name__,
                error=str(exc),
            )
            return FetchError(
                url=url,
                reason="fetch-error",
                details=str(exc) or exc.__class__.__name__,
            )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self.policy.timeout_seconds),
            follow_redirects=False,
            headers={"User-Agent": self.policy.user_agent},
        )

    async def _check_resolved_addresses(self, url: str) -> str | None:
        """Resolve the target host and return a rejection message if blocked."""
        parts = urlsplit(url)
        host = parts.hostname or ""
        port = parts.port or (443 if parts.scheme == "https" else 80)
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        for info in infos:
            address = str(info[4][0]).split("%", 1)[0]
            if is_blocked_ip(address):
                return f'Host "{host}" resolves to blocked address "{address}"'
        return None

    async def _fetch_validated(self, url: str) -> FetchResult | FetchError:
        current_url = url
        async with self._client() as client:
            for _hop in range(self.policy.max_redirects + 1):
                if self.policy.resolve_dns:
                    blocked = await self._check_resolved_addresses(current_url)
                    if blocked:
                        logger.warning("Fetch blocked by DNS check", url=current_url)
                        return FetchError(
                            url=url, reason="SSRF-check-failed", details=blocked
                        )

                logger.info("Fetching URL", url=current_url)
                async with client.stream("GET", current_url) as response:
                    if response.is_redirect:
                        location = response.headers["location"]
                        next_url = urljoin(str(response.url), location)
                        outcome = validate_url(next_url, self.policy)
                        if not outcome.valid:
                            logger.warning(
                                "Redirect blocked by SSRF check",
                                url=url,
                                redirect_to=next_url,
                                rejection=outcome.reason,
                            )
                            return FetchError(
                                url=url,
                                reason="SSRF-check-failed",
                                details=(
                                    f"Redirect to {next_url} rejected: "
                                    f"{outcome.message}"
                                ),
                            )
                        current_url = next_url
                        continue

                    if not response.is_success:
                        logger.warning(
                            "Fetch failed with non-OK status",
                            url=current_url,
                            status=response.status_code,
                        )
                        return FetchError(
                            url=url,
                            reason="HTTP-error",
                            details=(
                                f"{response.status_code} {response.reason_phrase}"
                            ).strip(),
                        )

                    try:
                        body = await self._read_capped(response)
                    except _BodyTooLarge:
                        logger.warning(
                            "Fetch aborted: body over limit",
                            url=current_url,
                            max_bytes=self.policy.max_fetch_bytes,
                        )
                        return FetchError(
                            url=url,
                            reason="content-too-large",
                            details=f"Exceeded {self.policy.max_fetch_bytes} bytes",
                        )

                    if not body:
                        return FetchError(url=url, reason="no-body")

                    return self._build_result(
                        url, current_url, body, response.status_code
                    )

        return FetchError(
            url=url,
            reason="fetch-error",
            details=f"Exceeded {self.policy.max_redirects} redirects",
        )

    async def _read_capped(self, response: httpx.Response) -> bytes:
        """Read the body chunk by chunk, stopping as soon as the cap is passed."""
        limit = self.policy.max_fetch_bytes
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise _BodyTooLarge

        chunks: list[bytes] = []
        total = 0
        async for chunk in response.aiter_bytes():
            total += len(chunk)
            if total > limit:
                raise _BodyTooLarge
            chunks.append(chunk)
        return b"".join(chunks)

    def _build_result(
        self, url: str, final_url: str, body: bytes, status_code: int
    ) -> FetchResult:
        html = body.decode("utf-8", errors="replace")
        title = extract_title(html, final_url)
        content = sanitize_html(html)
        content_hash = compute_content_hash(content)
        description, links = _extract_page_metadata(html, final_url)

        logger.info(
            "Fetch successful", url=final_url, size=len(body), hash=content_hash
        )
        return FetchResult(
            url=url,
            title=title,
            content=content,
            content_hash=content_hash,
            fetched_at=datetime.now(UTC),
            status_code=status_code,
            final_url=final_url,
            description=description,
            links=links,
        )


async def safe_fetch(
    url: str,
    policy: FetchPolicy,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchResult | FetchError:
    """Run one bounded fetch with a throwaway :class:`SafeFetcher`."""
    return await SafeFetcher(policy, transport=transport).fetch(url)
