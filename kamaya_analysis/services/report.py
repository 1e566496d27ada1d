"""
Report service module for exporting and rendering analysis rankings.

This module provides:
- JSON and CSV interchange formats for download
- Re-loading a previously exported JSON report
- Rendering the rankings as a standalone HTML page
"""

import datetime
import html
import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from kamaya_analysis.api.schemas import ResultsIn
from kamaya_analysis.models import (
    CATEGORIES,
    CATEGORY_LABELS,
    AnalysisResults,
    RankingItem,
    Report,
)

logger = logging.getLogger(__name__)

CSV_HEADER = "カテゴリ,名前,出現回数"
UTF8_BOM = b"\xef\xbb\xbf"


class InvalidReportError(ValueError):
    """Raised when an uploaded report file cannot be restored."""


def build_report(
    results: AnalysisResults, generated_at: Optional[datetime.datetime] = None
) -> Report:
    when = generated_at or datetime.datetime.now(datetime.timezone.utc)
    return {
        "generatedAt": when.isoformat(),
        "ingredients": results["ingredients"],
        "dishes": results["dishes"],
        "cookingMethods": results["cookingMethods"],
        "seasons": results["seasons"],
    }


def to_json(report: Report) -> str:
    return json.dumps(report, ensure_ascii=False, indent=2)


def to_csv(results: AnalysisResults) -> bytes:
    """Returns the rankings as CSV, UTF-8 with a byte-order mark for spreadsheets."""
    lines = [CSV_HEADER]
    for category in CATEGORIES:
        label = CATEGORY_LABELS[category]
        for item in results[category]:  # type: ignore[literal-required]
            name = item["name"].replace('"', '""')
            lines.append(f'{label},"{name}",{item["count"]}')
    return UTF8_BOM + "\n".join(lines).encode("utf-8")


def load_report(content: Union[str, bytes]) -> Report:
    """Restores a report previously produced by to_json.

    Accepts raw file bytes (UTF-8, with or without a BOM) or decoded text.
    """
    try:
        text = content.decode("utf-8-sig") if isinstance(content, bytes) else content
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidReportError(f"JSONファイルの読み込みに失敗しました: {e}") from e

    if not isinstance(data, dict):
        raise InvalidReportError(
            "無効なファイル形式です。kamaya-report-*.json ファイルを選択してください。"
        )
    try:
        results = ResultsIn.model_validate(data).model_dump()
    except ValidationError as e:
        raise InvalidReportError(
            f"無効なファイル形式です。kamaya-report-*.json ファイルを選択してください。 ({e.error_count()} errors)"
        ) from e

    report: Report = {
        "generatedAt": str(data.get("generatedAt") or ""),
        "ingredients": results["ingredients"],
        "dishes": results["dishes"],
        "cookingMethods": results["cookingMethods"],
        "seasons": results["seasons"],
    }
    return report


def report_filename(extension: str, when: Optional[datetime.date] = None) -> str:
    day = when or datetime.datetime.now(datetime.timezone.utc).date()
    return f"kamaya-report-{day.isoformat()}.{extension}"


class ReportService:
    """Renders analysis rankings as an HTML page."""

    _STYLES = {
        "body": "font-family: 'Hiragino Sans', 'Segoe UI', sans-serif; color: #333; line-height: 1.6;",
        "container": "max-width: 960px; margin: 0 auto; border: 1px solid #e0e0e0; border-radius: 8px;",
        "header": "background-color: #FFE600; padding: 20px; text-align: center; color: #333;",
        "header_h2": "margin:0; letter-spacing: 0.1em;",
        "header_p": "margin:5px 0 0; opacity: 0.8;",
        "section": "padding: 20px;",
        "section_h3": "border-bottom: 2px solid #333; padding-bottom: 5px; margin-top: 30px;",
        "table": "width: 100%; border-collapse: collapse; font-size: 14px;",
        "row": "border-bottom: 1px solid #eee;",
        "rank": "width: 3em; color: #999; padding: 4px 0;",
        "count": "width: 5em; text-align: right; font-weight: bold;",
    }

    def __init__(self, limit: int = 30):
        self.limit = limit

    def _render_section(self, title: str, items: List[RankingItem]) -> str:
        """Renders one ranking table."""
        section_html = f"<h3 style='{self._STYLES['section_h3']}'>{html.escape(title)}</h3>"
        if not items:
            return section_html + "<p>データなし</p>"

        section_html += f"<table style=\"{self._STYLES['table']}\">"
        for position, item in enumerate(items[: self.limit], start=1):
            section_html += f"""
            <tr style="{self._STYLES['row']}">
                <td style="{self._STYLES['rank']}">{position}</td>
                <td>{html.escape(item['name'])}</td>
                <td style="{self._STYLES['count']}">{item['count']}</td>
            </tr>
            """
        return section_html + "</table>"

    def generate_report_html(
        self, results: AnalysisResults, meta: Optional[Dict[str, Any]] = None
    ) -> str:
        """Generates the HTML content for the report."""
        meta = meta or {}
        summary = " / ".join(f"{key}: {value}" for key, value in meta.items())
        html_content = f"""
        <html>
        <head><meta charset="utf-8"><title>Kamaya Analysis</title></head>
        <body style="{self._STYLES['body']}">
            <div style="{self._STYLES['container']}">
                <div style="{self._STYLES['header']}">
                    <h2 style="{self._STYLES['header_h2']}">かま屋通信 分析レポート</h2>
                    <p style="{self._STYLES['header_p']}">{html.escape(summary)}</p>
                </div>
                <div style="{self._STYLES['section']}">
        """

        for category in CATEGORIES:
            html_content += self._render_section(
                CATEGORY_LABELS[category], results[category]  # type: ignore[literal-required]
            )

        html_content += "</div></div></body></html>"
        return html_content
