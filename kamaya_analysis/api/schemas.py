"""Pydantic request schemas for the analysis API."""
from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class ExtractIn(BaseModel):
    pdfUrl: str = Field(..., min_length=1)
    title: str = ""
    pdfType: Optional[Literal["google-drive", "direct"]] = None


class LoadPdfsIn(BaseModel):
    filenames: List[str]


class PdfIn(BaseModel):
    title: str = ""
    pdfBase64: str = Field(..., min_length=1)


class AnalyzeIn(BaseModel):
    pdf: PdfIn
    apiKey: str = ""


class GenerateIn(BaseModel):
    analysisData: Any = None
    pdfText: Optional[str] = None
    type: Literal["summary", "blog", "sns", "video_prompt"]
    apiKey: str = ""


class RankingItemIn(BaseModel):
    name: str
    count: int


class ResultsIn(BaseModel):
    ingredients: List[RankingItemIn]
    dishes: List[RankingItemIn]
    cookingMethods: List[RankingItemIn]
    seasons: List[RankingItemIn]
