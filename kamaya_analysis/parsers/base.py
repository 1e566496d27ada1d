"""
Base classes and interfaces for archive parsers.

This module defines the contract that all archive parsers must follow.
"""

from typing import Any, Callable, Dict, List, Optional, Protocol
from kamaya_analysis.models import Article

# Receives (event_type, payload) where event_type is log, progress, complete or error
ProgressCallback = Callable[[str, Dict[str, Any]], None]


class ArchiveParser(Protocol):
    """
    Protocol for archive parsers.

    Classes implementing this protocol should be able to walk a paginated
    listing and turn each entry's detail page into an Article.
    """

    def collect_article_urls(
        self, on_event: Optional[ProgressCallback] = None
    ) -> List[str]:
        """Walks the listing pages and returns article URLs."""

    def fetch_article(self, url: str) -> Article:
        """Fetches and parses a single article page."""
