"""
Data models for the Kamaya newsletter analysis application.
"""

from typing import Dict, List, Literal, Optional, TypedDict


PdfType = Literal["google-drive", "direct"]


class Article(TypedDict):
    """Type definition for a scraped newsletter article."""

    title: str
    url: str
    date: str  # YYYY-MM-DD, or "" when no date could be parsed
    pdfUrl: Optional[str]
    pdfType: Optional[PdfType]


class PdfData(TypedDict, total=False):
    """A PDF held in memory, ready to be sent for analysis."""

    title: str
    pdfBase64: str
    size: int
    filename: str


class CachedPdf(TypedDict):
    """Metadata for a PDF stored in the download cache."""

    title: str
    filename: str
    size: int
    filepath: str


class DownloadResult(TypedDict, total=False):
    """Outcome of fetching a single PDF."""

    success: bool
    title: str
    pdfBase64: str
    size: int
    savedPath: str
    filename: str
    cached: bool
    error: str
    skipped: bool


class AnalysisData(TypedDict):
    """Terms the model extracted from one document."""

    ingredients: List[str]
    dishes: List[str]
    cookingMethods: List[str]
    seasons: List[str]


class AnalysisResponse(TypedDict, total=False):
    """Outcome of analyzing a single PDF."""

    success: bool
    title: str
    data: AnalysisData
    error: str


class RankingItem(TypedDict):
    """One term and how many times it was extracted."""

    name: str
    count: int


class AnalysisResults(TypedDict):
    """Aggregated rankings across all analyzed documents."""

    ingredients: List[RankingItem]
    dishes: List[RankingItem]
    cookingMethods: List[RankingItem]
    seasons: List[RankingItem]


class Report(TypedDict):
    """Exported rankings with the time they were generated."""

    generatedAt: str
    ingredients: List[RankingItem]
    dishes: List[RankingItem]
    cookingMethods: List[RankingItem]
    seasons: List[RankingItem]


CATEGORIES = ("ingredients", "dishes", "cookingMethods", "seasons")

# Labels used in CSV exports and the HTML report
CATEGORY_LABELS: Dict[str, str] = {
    "ingredients": "食材",
    "dishes": "料理",
    "cookingMethods": "調理法",
    "seasons": "季節/イベント",
}
