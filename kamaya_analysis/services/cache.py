"""
Disk cache for downloaded PDFs.

Each article is stored as one file named after its sanitized title. The
cache has no index; the directory listing is the source of truth.
"""

import base64
import logging
import os
import re
from typing import List, Optional

from kamaya_analysis import config
from kamaya_analysis.models import CachedPdf, PdfData

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")
MAX_FILENAME_LENGTH = 100


def sanitize_filename(title: str) -> str:
    """Strips characters that are unsafe in filenames and caps the length."""
    cleaned = _DISALLOWED.sub("", title)
    cleaned = _WHITESPACE.sub("_", cleaned)
    return cleaned[:MAX_FILENAME_LENGTH]


def title_from_filename(filename: str) -> str:
    """Recovers a display title from a cached filename."""
    if filename.endswith(".pdf"):
        filename = filename[: -len(".pdf")]
    return filename.replace("_", " ")


class PdfCache:
    """Reads and writes PDFs under a single download directory."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or config.DOWNLOAD_DIR

    def filename_for(self, title: str) -> str:
        return sanitize_filename(title) + ".pdf"

    def path_for(self, filename: str) -> str:
        # Only the last path component is honoured so callers cannot escape the cache
        return os.path.join(self.directory, os.path.basename(filename))

    def exists(self, filename: str) -> bool:
        return os.path.isfile(self.path_for(filename))

    def read(self, filename: str) -> bytes:
        with open(self.path_for(filename), "rb") as f:
            return f.read()

    def write(self, filename: str, content: bytes) -> str:
        """Saves content and returns the full path written."""
        os.makedirs(self.directory, exist_ok=True)
        filepath = self.path_for(filename)
        with open(filepath, "wb") as f:
            f.write(content)
        logger.info("PDF saved to: %s (%d KB)", filepath, round(len(content) / 1024))
        return filepath

    def list_pdfs(self) -> List[CachedPdf]:
        """Returns metadata for every cached PDF."""
        try:
            names = sorted(os.listdir(self.directory))
        except FileNotFoundError:
            return []

        pdfs: List[CachedPdf] = []
        for filename in names:
            if not filename.endswith(".pdf"):
                continue
            filepath = self.path_for(filename)
            pdfs.append(
                {
                    "title": title_from_filename(filename),
                    "filename": filename,
                    "size": os.path.getsize(filepath),
                    "filepath": filepath,
                }
            )
        return pdfs

    def load_pdfs(self, filenames: List[str]) -> List[PdfData]:
        """Returns base64 content for each readable file; others are skipped."""
        pdfs: List[PdfData] = []
        for filename in filenames:
            try:
                content = self.read(filename)
            except OSError as e:
                logger.error("Failed to read %s: %s", filename, e)
                continue
            pdfs.append(
                {
                    "title": title_from_filename(filename),
                    "filename": os.path.basename(filename),
                    "pdfBase64": base64.b64encode(content).decode("ascii"),
                    "size": len(content),
                }
            )
        return pdfs
