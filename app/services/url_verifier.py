"""URL verification for cited evidence.

A claim is only kept when its cited page can be fetched and re-read:
HTTP 200, an HTML body, every required string present, no soft-404
markers. For competitor mentions the page must also live on one of the
competitor's domains and must not be a generic listing page.

Verification failures are expected and frequent. They come back as
``ValidationOutcome(valid=False, reason=...)`` and are logged at debug
level only; nothing here raises.
"""

import logging
import re
from collections.abc import Sequence
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from app.core.config import VerifierSettings, get_pipeline_config
from app.models import ValidationOutcome, hostname_of, is_http_url
from app.services.worker_pool import CancellationToken, WorkerPool

logger = logging.getLogger(__name__)

# A bare "404" token, not part of a longer number or identifier
BARE_404_PATTERN = re.compile(r"(?<![\w.])404(?![\w.])")


def page_text(html: str) -> str:
    """Visible text of an HTML page (scripts and styles removed)."""
    soup = BeautifulSoup(html, "lxml")
    for element in soup(["script", "style", "noscript"]):
        element.decompose()
    text = soup.get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text)


def domain_matches(url: str, domains: Sequence[str]) -> bool:
    """Check that the URL's host equals, or is a subdomain of, one of ``domains``."""
    host = hostname_of(url)
    for domain in domains:
        domain = domain.lower().strip().removeprefix("www.")
        if host == domain or host.endswith("." + domain):
            return True
    return False


def is_listing_page(url: str, listing_segments: Sequence[str]) -> bool:
    """Detect generic index pages such as ``/customers/`` or a bare homepage."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    if len(segments) <= 1:
        return True
    return segments[-1].lower() in {s.lower() for s in listing_segments}


class UrlVerifier:
    """Fetches cited pages and checks they really carry the claimed evidence."""

    def __init__(self, settings: VerifierSettings | None = None) -> None:
        self.settings = settings or get_pipeline_config().verifier
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "UrlVerifier":
        """Enter async context and create HTTP client."""
        await self._get_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context and close HTTP client."""
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.settings.timeout_seconds,
                follow_redirects=True,
                headers={
                    "User-Agent": self.settings.user_agent,
                    "Accept": "text/html,application/xhtml+xml",
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def _reject(self, url: str, reason: str) -> ValidationOutcome:
        logger.debug(f"URL rejected {url}: {reason}")
        return ValidationOutcome.reject(reason)

    async def _fetch_page(self, url: str) -> tuple[str | None, str | None]:
        """
        Fetch a page once.

        Returns:
            Tuple of (HTML content or None, rejection reason or None)
        """
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.TimeoutException:
            return None, "timeout"
        except httpx.HTTPError as e:
            return None, f"network error: {type(e).__name__}"

        if response.status_code != 200:
            return None, f"HTTP {response.status_code}"
        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type.lower():
            return None, f"not HTML ({content_type or 'no content-type'})"
        return response.text, None

    async def verify(
        self,
        url: str,
        must_contain: Sequence[str] = (),
        competitor_domains: Sequence[str] | None = None,
    ) -> ValidationOutcome:
        """Verify that ``url`` is live and carries the expected evidence.

        Args:
            url: Cited page.
            must_contain: Strings that must all appear in the page text (case-insensitive).
            competitor_domains: When given, the host must belong to one of these
                domains and the page must not be a generic listing page.

        Returns:
            ValidationOutcome; ``valid=False`` always carries a reason.
        """
        if not is_http_url(url):
            return self._reject(url, "malformed URL")

        if competitor_domains is not None:
            if not domain_matches(url, competitor_domains):
                return self._reject(url, "domain mismatch")
            if is_listing_page(url, self.settings.listing_segments):
                return self._reject(url, "generic listing page")

        html, reason = await self._fetch_page(url)
        if html is None:
            return self._reject(url, reason or "fetch failed")

        text = page_text(html).lower()

        for needle in must_contain:
            if needle and needle.lower() not in text:
                return self._reject(url, f"missing text: {needle}")

        for marker in self.settings.soft_404_markers:
            if marker.lower() in text:
                return self._reject(url, f"soft 404 ({marker})")
        if BARE_404_PATTERN.search(text):
            return self._reject(url, "soft 404 (404)")

        return ValidationOutcome.ok()

    async def verify_many(
        self,
        checks: Sequence[tuple[str, Sequence[str], Sequence[str] | None]],
        max_in_flight: int | None = None,
        token: CancellationToken | None = None,
    ) -> list[ValidationOutcome]:
        """Verify many URLs concurrently.

        Each check is ``(url, must_contain, competitor_domains)``. Outcomes are
        returned in input order; a timed-out, failed or cancelled check is an
        invalid outcome.
        """
        pool = WorkerPool(
            max_in_flight=max_in_flight or get_pipeline_config().aggregator.max_in_flight,
            timeout=self.settings.timeout_seconds + 1,
            token=token,
        )
        jobs = [
            (lambda u=url, m=must, d=domains: self.verify(u, m, d))
            for url, must, domains in checks
        ]
        outcomes = await pool.run(jobs)

        results: list[ValidationOutcome] = []
        for (url, _, _), outcome in zip(checks, outcomes):
            if outcome.cancelled:
                results.append(ValidationOutcome.reject("cancelled"))
            elif outcome.timed_out:
                results.append(self._reject(url, "timeout"))
            elif outcome.error is not None:
                results.append(self._reject(url, f"error: {type(outcome.error).__name__}"))
            else:
                results.append(outcome.value)
        return results


_url_verifier: UrlVerifier | None = None


def get_url_verifier() -> UrlVerifier:
    """Get the singleton UrlVerifier instance."""
    global _url_verifier
    if _url_verifier is None:
        _url_verifier = UrlVerifier()
    return _url_verifier
