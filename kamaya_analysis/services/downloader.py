"""
PDF downloader.

Resolves newsletter PDF links to binary content. Google Drive viewer links
are rewritten to direct downloads, the Drive virus-scan interstitial is
followed once, and anything that still comes back as HTML is skipped.
Results are cached on disk through PdfCache.
"""

import base64
import logging
import re
from typing import Optional

import requests

from kamaya_analysis import config
from kamaya_analysis.models import DownloadResult
from kamaya_analysis.services.cache import PdfCache

logger = logging.getLogger(__name__)

DRIVE_DOWNLOAD_URL = "https://drive.google.com/uc?export=download&id={file_id}"

_DRIVE_PATH_ID = re.compile(r"/file/d/([^/]+)")
_DRIVE_QUERY_ID = re.compile(r"[?&]id=([^&]+)")
_CONFIRM_LINK = re.compile(r'href="([^"]*confirm=[^"]*)"')

ACCESS_DENIED_PHRASES = (
    "Request access",
    "アクセス権",
    "Access denied",
    "Sign in",
    "You need permission",
    "ログイン",
)


def get_google_drive_download_url(view_url: str) -> str:
    """Converts a Drive viewer URL to its direct-download form."""
    match = _DRIVE_PATH_ID.search(view_url) or _DRIVE_QUERY_ID.search(view_url)
    if match:
        return DRIVE_DOWNLOAD_URL.format(file_id=match.group(1))
    return view_url


def find_confirm_url(html: str) -> Optional[str]:
    """Returns the absolute "download anyway" link from a Drive warning page."""
    match = _CONFIRM_LINK.search(html)
    if not match:
        return None
    confirm_url = match.group(1).replace("&amp;", "&")
    if not confirm_url.startswith("http"):
        confirm_url = "https://drive.google.com" + confirm_url
    return confirm_url


def _skip(error: str) -> DownloadResult:
    return {"success": False, "error": error, "skipped": True}


class PdfDownloader:
    """Downloads newsletter PDFs, consulting the disk cache first."""

    def __init__(self, cache: Optional[PdfCache] = None, timeout: int = config.REQUEST_TIMEOUT):
        self.cache = cache or PdfCache()
        self.timeout = timeout
        self.headers = {"User-Agent": config.USER_AGENT}

    def _from_cache(self, title: str, filename: str) -> Optional[DownloadResult]:
        if not self.cache.exists(filename):
            return None
        try:
            content = self.cache.read(filename)
        except OSError as e:
            logger.error("Failed to read cached file %s: %s", filename, e)
            return None
        logger.info("Already exists: %s", filename)
        return {
            "success": True,
            "title": title,
            "pdfBase64": base64.b64encode(content).decode("ascii"),
            "size": len(content),
            "savedPath": self.cache.path_for(filename),
            "filename": filename,
            "cached": True,
        }

    def _save(self, content: bytes, title: str, filename: str) -> DownloadResult:
        try:
            filepath = self.cache.write(filename, content)
        except OSError as e:
            logger.error("Save PDF error: %s", e)
            return _skip(f"Failed to save PDF: {e}")
        return {
            "success": True,
            "title": title,
            "pdfBase64": base64.b64encode(content).decode("ascii"),
            "size": len(content),
            "savedPath": filepath,
            "filename": filename,
            "cached": False,
        }

    def _handle_html(self, html: str, title: str, filename: str) -> DownloadResult:
        if any(phrase in html for phrase in ACCESS_DENIED_PHRASES):
            return _skip("Access denied - no permission to view this PDF")

        confirm_url = find_confirm_url(html)
        if confirm_url:
            logger.info("Following confirm link: %s", confirm_url)
            resp = requests.get(confirm_url, timeout=self.timeout, headers=self.headers)
            content_type = resp.headers.get("content-type", "")
            if resp.ok and (
                "application/pdf" in content_type or "octet-stream" in content_type
            ):
                return self._save(resp.content, title, filename)

        return _skip("Received HTML instead of PDF (access restriction)")

    def download(
        self, pdf_url: str, title: str, pdf_type: Optional[str] = None
    ) -> DownloadResult:
        """Returns the PDF for an article, or a skipped result explaining why not."""
        if not pdf_url:
            raise ValueError("PDF URL is required")

        filename = self.cache.filename_for(title)
        cached = self._from_cache(title, filename)
        if cached:
            return cached

        download_url = pdf_url
        if pdf_type == "google-drive" or "drive.google.com" in pdf_url:
            download_url = get_google_drive_download_url(pdf_url)
            logger.info("Google Drive URL: %s -> %s", pdf_url, download_url)
        else:
            logger.info("Direct PDF URL: %s", download_url)

        try:
            resp = requests.get(
                download_url,
                timeout=self.timeout,
                headers=self.headers,
                allow_redirects=True,
            )
            if not resp.ok:
                return _skip(f"Failed to download PDF: {resp.status_code}")

            if "text/html" in resp.headers.get("content-type", ""):
                return self._handle_html(resp.text, title, filename)

            return self._save(resp.content, title, filename)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Extract error for %s: %s", title, e)
            return _skip(str(e))
