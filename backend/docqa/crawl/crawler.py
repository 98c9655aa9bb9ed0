"""Documentation crawler.

Fetches HTML pages, Markdown files and PDFs, reduces them to plain text and
walks same-domain links that match a URL pattern down to a bounded depth.
"""

from __future__ import annotations

import tempfile
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping, Sequence
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from docqa.core.errors import CrawlError
from docqa.core.logging import get_logger, log_context
from docqa.core.metrics import CRAWL_PAGES
from docqa.ingest.loaders import PDFLoader
from docqa.models.entities import CrawledPage
from docqa.utils.text import normalize

logger = get_logger(__name__)

WILDCARD = "*"
STRIP_TAGS = ("script", "style", "nav", "header", "footer")
CONTENT_SELECTOR = "main, article, .content, #content, .main-content, [role=main]"
_HTTP_SCHEMES = ("http", "https")


class WebCrawler:
    """Extract text from documentation sites.

    ``visited``, ``base_url`` and ``pattern`` make up the state of one
    recursive crawl; :meth:`crawl_recursively` resets them on entry.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        user_agent: str = "docqa-crawler/0.1",
    ) -> None:
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = user_agent
        self.session = session
        self.timeout = timeout
        self.visited: set[str] = set()
        self.base_url = ""
        self.pattern = ""

    def reset_state(self) -> None:
        self.visited.clear()
        self.base_url = ""
        self.pattern = ""
        logger.debug("Crawler state has been reset")

    # Single resources -------------------------------------------------

    def crawl(self, url: str) -> str:
        """Return the text of one resource, dispatching on its extension."""
        text, _ = self._extract(url)
        return text

    def _extract(self, url: str) -> tuple[str, str | None]:
        """Return ``(text, html)``; ``html`` is None for non-HTML resources."""
        extension = url_extension(url)
        try:
            if extension == ".pdf":
                return self._extract_pdf(url), None
            if extension == ".md":
                return self._extract_markdown(url), None
            html = self._fetch(url).text
            return extract_html_text(html), html
        except CrawlError:
            raise
        except Exception as exc:
            raise CrawlError(url, exc) from exc

    def _fetch(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.timeout)
        if not 200 <= response.status_code < 300:
            raise CrawlError(url, f"HTTP status {response.status_code}")
        return response

    def _extract_markdown(self, url: str) -> str:
        content = self._fetch(url).text
        if not content or not content.strip():
            raise CrawlError(url, "No content found in the Markdown file.")
        return content

    def _extract_pdf(self, url: str) -> str:
        response = self._fetch(url)
        with tempfile.TemporaryDirectory(prefix="docqa-pdf-") as tmp_dir:
            pdf_path = Path(tmp_dir) / "downloaded.pdf"
            pdf_path.write_bytes(response.content)
            if not pdf_path.is_file():
                raise CrawlError(url, f"PDF file not found at path: {pdf_path}")
            text = PDFLoader().load(pdf_path).text
        if not text.strip():
            raise CrawlError(url, "No text could be extracted from the PDF.")
        return text

    # Recursive crawling -----------------------------------------------

    def should_crawl(self, url: str) -> bool:
        return matches_pattern(url, self.pattern)

    def crawl_recursively(self, seed_url: str, max_depth: int = 3) -> list[CrawledPage]:
        """Depth-first crawl from ``seed_url`` in document order of links.

        A seed ending in ``*`` is fetched without the marker and acts as a
        prefix pattern; any other seed only matches itself.
        """
        self.reset_state()
        start_url = seed_url[: -len(WILDCARD)] if seed_url.endswith(WILDCARD) else seed_url
        parsed = urlparse(start_url)
        if parsed.scheme not in _HTTP_SCHEMES or not parsed.netloc:
            raise CrawlError(seed_url, "seed must be an absolute http(s) URL")
        self.base_url = f"{parsed.scheme}://{parsed.netloc}"
        self.pattern = seed_url
        logger.info(
            "Starting recursive crawl from %s (pattern %s)",
            start_url,
            self.pattern,
            extra=log_context(pattern=self.pattern),
        )

        results: list[CrawledPage] = []
        frontier: list[tuple[str, int]] = [(start_url, 0)]
        while frontier:
            url, depth = frontier.pop()
            if url in self.visited or not self.should_crawl(url):
                continue
            self.visited.add(url)
            logger.info("Crawling (depth %s): %s", depth, url, extra=log_context(url=url, depth=depth))
            try:
                text, html = self._extract(url)
            except CrawlError as exc:
                CRAWL_PAGES.labels(status="error").inc()
                logger.warning(
                    "Failed to crawl %s: %s", url, exc.cause, extra=log_context(url=url, depth=depth)
                )
                continue
            CRAWL_PAGES.labels(status="ok").inc()
            results.append(CrawledPage(url=url, content=text))

            if depth >= max_depth or html is None:
                continue
            links = self.discover_links(url, html)
            logger.debug("Found %s linked URLs from %s", len(links), url)
            frontier.extend((link, depth + 1) for link in reversed(links))

        logger.info("Crawling complete. Processed %s URLs.", len(results))
        return results

    def discover_links(self, page_url: str, html: str) -> list[str]:
        """Same-domain links on the page that match the pattern and are unvisited."""
        base_host = urlparse(self.base_url).netloc
        found: list[str] = []
        for anchor in BeautifulSoup(html, "html.parser").select("a[href]"):
            href = str(anchor.get("href", "")).strip().split("#", 1)[0]
            if not href:
                continue
            resolved = resolve_href(page_url, href)
            if resolved is None or urlparse(resolved).netloc != base_host:
                continue
            found.append(resolved)
        unique = dict.fromkeys(found)
        return [url for url in unique if self.should_crawl(url) and url not in self.visited]

    def crawl_patterns(
        self,
        patterns: Sequence[str],
        max_depth: int = 3,
        fallback_urls: Mapping[str, Iterable[str]] | None = None,
    ) -> list[CrawledPage]:
        """Crawl several patterns; pages are merged by URL, last write wins.

        When a pattern yields at most one page, the URLs listed for it in
        ``fallback_urls`` are fetched directly.
        """
        merged: dict[str, CrawledPage] = {}
        for index, pattern in enumerate(patterns, start=1):
            logger.info("[%s/%s] Starting crawl with pattern: %s", index, len(patterns), pattern)
            try:
                pages = self.crawl_recursively(pattern, max_depth)
            except CrawlError as exc:
                logger.warning("Skipping pattern %s: %s", pattern, exc.cause, extra=log_context(pattern=pattern))
                pages = []
            known = list((fallback_urls or {}).get(pattern, ()))
            if len(pages) <= 1 and known:
                logger.info("Using fallback list of known URLs for pattern: %s", pattern)
                crawled = {page.url for page in pages}
                for url in known:
                    if url in crawled:
                        continue
                    try:
                        pages.append(CrawledPage(url=url, content=self.crawl(url)))
                    except CrawlError as exc:
                        logger.warning(
                            "Failed to crawl known URL %s: %s",
                            url,
                            exc.cause,
                            extra=log_context(url=url, pattern=pattern),
                        )
            logger.info("Total pages for pattern %s: %s", pattern, len(pages))
            for page in pages:
                merged[page.url] = page
        return list(merged.values())


def matches_pattern(url: str, pattern: str) -> bool:
    """Pattern check tolerant of a single trailing slash on either side.

    ``https://site/docs*`` matches any URL starting with ``https://site/docs``,
    including ``https://site/docs-v2``; a pattern without the marker matches
    only itself.
    """
    if not pattern:
        return False
    normalized_url = _with_slash(url)
    if pattern.endswith(WILDCARD):
        base = pattern[: -len(WILDCARD)]
        return url.startswith(base) or normalized_url.startswith(base)
    return url == pattern or normalized_url == _with_slash(pattern)


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else f"{url}/"


def resolve_href(page_url: str, href: str) -> str | None:
    """Absolute http(s) URL for an anchor href, or None for other schemes."""
    scheme = urlparse(href).scheme.lower()
    if scheme and scheme not in _HTTP_SCHEMES:
        return None
    resolved = urljoin(page_url, href)
    if urlparse(resolved).scheme not in _HTTP_SCHEMES:
        return None
    return resolved


def extract_html_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()

    containers = soup.select(CONTENT_SELECTOR)
    ids = {id(element) for element in containers}
    # Nested matches (an article inside main) would otherwise repeat text.
    outermost = [
        element for element in containers if not any(id(parent) in ids for parent in element.parents)
    ]
    text = normalize(" ".join(element.get_text(" ") for element in outermost))
    if not text:
        body = soup.body or soup
        text = normalize(body.get_text(" "))
    if not text:
        raise ValueError("No text content found on the webpage.")
    return text


def url_extension(url: str) -> str:
    return PurePosixPath(urlparse(url).path).suffix.lower()


def format_knowledge(pages: Iterable[CrawledPage]) -> list[str]:
    """Knowledge items tagged with the page they were crawled from."""
    return [f"[Source: {page.url}]\n{page.content}" for page in pages]


__all__ = [
    "WebCrawler",
    "matches_pattern",
    "resolve_href",
    "extract_html_text",
    "url_extension",
    "format_knowledge",
]
