"""
Daybook archive parser.

This module provides the DaybookParser class, which walks the foodhub.co.jp
"daybook" listing for a single category and extracts newsletter issues
together with their PDF links and publication dates.
"""

import concurrent.futures
import logging
import re
import threading
from typing import List, Optional
from urllib.parse import quote

import requests
from bs4 import BeautifulSoup

from kamaya_analysis import config
from kamaya_analysis.models import Article
from kamaya_analysis.parsers.base import ArchiveParser, ProgressCallback

logger = logging.getLogger(__name__)

_ARTICLE_PATH = re.compile(r"/daybook/(\d+)/?$")
_DRIVE_URL = re.compile(r"https?://drive\.google\.com/[^\s\"'<>]+")
_PDF_URL = re.compile(r"https?://[^\s\"'<>]+\.pdf", re.IGNORECASE)
_FULL_DATE = re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日")
_ISSUE_LABEL = re.compile(r"(\d{4})年(\d{1,2})月号")


def parse_article_date(html: str, title: str) -> str:
    """Returns YYYY-MM-DD from the page text, falling back to the issue label."""
    match = _FULL_DATE.search(html)
    if match:
        return f"{match.group(1)}-{int(match.group(2)):02d}-{int(match.group(3)):02d}"
    match = _ISSUE_LABEL.search(title)
    if match:
        return f"{match.group(1)}-{int(match.group(2)):02d}-01"
    return ""


class DaybookParser(ArchiveParser):
    """Scrapes the newsletter category of the foodhub daybook."""

    def __init__(
        self,
        base_url: str = config.BASE_URL,
        category: str = config.CATEGORY,
        max_pages: int = config.MAX_PAGES,
        title_keywords: tuple = config.TITLE_KEYWORDS,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.category = category
        self.max_pages = max_pages
        self.title_keywords = title_keywords
        self.cancel_event = cancel_event or threading.Event()
        self.headers = {
            "User-Agent": config.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "ja,en-US;q=0.9,en;q=0.8",
        }

    def _listing_url(self, page: int) -> str:
        query = f"?category={quote(self.category)}"
        if page == 1:
            return f"{self.base_url}/daybook/{query}"
        return f"{self.base_url}/daybook/page/{page}/{query}"

    def _absolute(self, href: str) -> str:
        return href if href.startswith("http") else f"{self.base_url}{href}"

    def _fetch_page(self, url: str) -> Optional[str]:
        """Returns the page HTML, or None on any network error."""
        try:
            resp = requests.get(url, timeout=config.REQUEST_TIMEOUT, headers=self.headers)
            if not resp.ok:
                logger.warning("Fetching %s returned %s", url, resp.status_code)
                return None
            return resp.text
        except requests.RequestException as req_err:
            logger.error("Network error fetching %s: %s", url, req_err)
            return None

    def extract_article_urls(self, html: str) -> List[str]:
        """Returns normalized article URLs linked from a listing page."""
        soup = BeautifulSoup(html, "html.parser")
        urls: List[str] = []
        for anchor in soup.select('a[href*="/daybook/"]'):
            href = anchor.get("href")
            if not href or "/page/" in href or not _ARTICLE_PATH.search(href):
                continue
            url = self._absolute(href).rstrip("/")
            if url not in urls:
                urls.append(url)
        return urls

    def collect_article_urls(
        self, on_event: Optional[ProgressCallback] = None
    ) -> List[str]:
        """Walks the listing pages until one adds nothing new."""
        emit = on_event or (lambda _type, _payload: None)
        all_urls: List[str] = []

        for page in range(1, self.max_pages + 1):
            if self.cancel_event.is_set():
                break

            html = self._fetch_page(self._listing_url(page))
            if html is None:
                break

            found_on_page = 0
            for url in self.extract_article_urls(html):
                if url not in all_urls:
                    all_urls.append(url)
                    found_on_page += 1

            logger.info(
                "Listing page %d: %d new (total %d)", page, found_on_page, len(all_urls)
            )
            emit(
                "progress",
                {
                    "message": f"ページ {page} を確認: {found_on_page} 件発見 (累計: {len(all_urls)} 件)",
                    "current": len(all_urls),
                },
            )

            if found_on_page == 0 and page > 1:
                break
            self.cancel_event.wait(config.PAGE_DELAY)

        return all_urls

    def _find_pdf_link(self, soup: BeautifulSoup, article: Article) -> None:
        for anchor in soup.find_all("a"):
            href = anchor.get("href")
            if not href:
                continue
            if "drive.google.com" in href:
                article["pdfUrl"] = href
                article["pdfType"] = "google-drive"
                return
            if href.lower().endswith(".pdf") or (
                "wp-content/uploads" in href and ".pdf" in href
            ):
                article["pdfUrl"] = self._absolute(href)
                article["pdfType"] = "direct"
                return

        # Links embedded in body text rather than anchors
        html = str(soup)
        match = _DRIVE_URL.search(html)
        if match:
            article["pdfUrl"] = match.group(0)
            article["pdfType"] = "google-drive"
            return
        match = _PDF_URL.search(html)
        if match:
            article["pdfUrl"] = match.group(0)
            article["pdfType"] = "direct"

    def parse_article(self, url: str, html: str) -> Article:
        """Builds an Article from a detail page."""
        article: Article = {
            "title": "",
            "url": url,
            "date": "",
            "pdfUrl": None,
            "pdfType": None,
        }
        soup = BeautifulSoup(html, "html.parser")

        h1 = soup.find("h1")
        h1_text = h1.get_text().strip() if h1 else ""
        title_tag = soup.title.get_text() if soup.title else ""
        article["title"] = h1_text or title_tag.split("|")[0].strip()

        self._find_pdf_link(soup, article)
        article["date"] = parse_article_date(html, article["title"])
        return article

    def fetch_article(self, url: str) -> Article:
        """Fetches and parses a single article page."""
        empty: Article = {
            "title": "",
            "url": url,
            "date": "",
            "pdfUrl": None,
            "pdfType": None,
        }
        html = self._fetch_page(url)
        if not html:
            return empty
        try:
            return self.parse_article(url, html)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error parsing %s: %s", url, e)
            return empty

    def fetch_articles(
        self, urls: List[str], on_event: Optional[ProgressCallback] = None
    ) -> List[Article]:
        """Fetches article details in small parallel batches."""
        emit = on_event or (lambda _type, _payload: None)
        batch_size = config.DETAIL_BATCH_SIZE
        articles: List[Article] = []

        with concurrent.futures.ThreadPoolExecutor(max_workers=batch_size) as executor:
            for i in range(0, len(urls), batch_size):
                if self.cancel_event.is_set():
                    break
                batch = urls[i : i + batch_size]
                # map keeps the batch in listing order
                articles.extend(executor.map(self.fetch_article, batch))

                done = min(i + batch_size, len(urls))
                emit(
                    "progress",
                    {
                        "message": f"記事詳細を取得中: {done}/{len(urls)}",
                        "current": done,
                        "total": len(urls),
                    },
                )
                if done < len(urls):
                    self.cancel_event.wait(config.DETAIL_DELAY)

        return articles

    def is_newsletter(self, article: Article) -> bool:
        return bool(article["title"]) and any(
            keyword in article["title"] for keyword in self.title_keywords
        )

    def scrape(self, on_event: Optional[ProgressCallback] = None) -> List[Article]:
        """Runs the full crawl and returns newsletter issues, newest first."""
        emit = on_event or (lambda _type, _payload: None)
        emit("log", {"message": "ページ一覧を取得中..."})

        urls = self.collect_article_urls(on_event)
        emit("log", {"message": f"{len(urls)} 件の記事URLを発見。詳細を取得中..."})

        detailed = self.fetch_articles(urls, on_event)
        newsletters = [a for a in detailed if self.is_newsletter(a)]
        newsletters.sort(key=lambda a: a["date"], reverse=True)

        with_pdf = [a for a in newsletters if a["pdfUrl"]]
        logger.info(
            "Scrape finished: %d issues (%d with PDF)", len(newsletters), len(with_pdf)
        )
        emit(
            "complete",
            {
                "success": True,
                "total": len(newsletters),
                "withPdf": len(with_pdf),
                "articles": newsletters,
            },
        )
        return newsletters
