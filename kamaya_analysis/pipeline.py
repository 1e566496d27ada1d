"""
Scrape -> download -> analyze orchestration.

Every stage is a single loop driven by one control flow. A shared
threading.Event acts as the cancellation signal: it is checked before each
iteration and the fixed delays between iterations wait on it, so a cancel
ends the stage at the next boundary. Cancelled stages return what they have
accumulated so far instead of raising.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from kamaya_analysis import config
from kamaya_analysis.models import AnalysisResults, Article, PdfData
from kamaya_analysis.services.aggregator import RankingAggregator
from kamaya_analysis.services.cache import PdfCache
from kamaya_analysis.services.downloader import PdfDownloader
from kamaya_analysis.services.llm import LLMService

logger = logging.getLogger(__name__)

LogFn = Callable[[str], None]


@dataclass
class DownloadSummary:
    pdfs: List[PdfData] = field(default_factory=list)
    cached: int = 0
    downloaded: int = 0
    skipped: int = 0
    cancelled: bool = False


@dataclass
class AnalysisSummary:
    results: AnalysisResults
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False


def _short(title: str, length: int) -> str:
    return title[:length] + "..."


def download_pdfs(
    articles: List[Article],
    downloader: PdfDownloader,
    cancel_event: threading.Event,
    log: LogFn = logger.info,
) -> DownloadSummary:
    """Fetches the PDF of every article that has one; failures are skipped."""
    summary = DownloadSummary()
    targets = [a for a in articles if a.get("pdfUrl")]
    log(f"PDFのダウンロードを開始します... (対象: {len(targets)}件)")

    for article in targets:
        if cancel_event.is_set():
            summary.cancelled = True
            break

        try:
            result = downloader.download(
                article["pdfUrl"] or "", article["title"], article.get("pdfType")
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Download failed for %s: %s", article["title"], e)
            result = {"success": False, "error": str(e), "skipped": True}

        if result.get("success"):
            summary.pdfs.append(
                {
                    "title": result["title"],
                    "pdfBase64": result["pdfBase64"],
                    "size": result["size"],
                    "filename": result["filename"],
                }
            )
            if result.get("cached"):
                summary.cached += 1
            else:
                summary.downloaded += 1
                log(f"新規ダウンロード: {_short(article['title'], 25)}")
        else:
            summary.skipped += 1
            error = result.get("error", "")
            logger.info("Skipped %s: %s", article["title"], error)
            if "Access denied" not in error:
                log(f"スキップ: {_short(article['title'], 20)}")

        # Cache hits need almost no courtesy delay
        if summary.cached > summary.downloaded:
            delay = config.CACHED_DOWNLOAD_DELAY
        else:
            delay = config.DOWNLOAD_DELAY
        if cancel_event.wait(delay):
            summary.cancelled = True
            break

    if summary.cancelled:
        log("キャンセルされました")
    else:
        log("--- 完了 ---")
    log(
        f"キャッシュから読込: {summary.cached}件, 新規ダウンロード: {summary.downloaded}件, "
        f"スキップ（アクセス不可等）: {summary.skipped}件, 合計: {len(summary.pdfs)}件"
    )
    return summary


def load_cached_pdfs(
    cache: PdfCache,
    cancel_event: Optional[threading.Event] = None,
    log: LogFn = logger.info,
) -> List[PdfData]:
    """Reads every cached PDF into memory in small batches."""
    cancel_event = cancel_event or threading.Event()
    filenames = [p["filename"] for p in cache.list_pdfs()]
    if not filenames:
        return []

    log(f"{len(filenames)}件のPDFを検出。読み込みを開始します...")
    pdfs: List[PdfData] = []
    batch_size = config.LOAD_BATCH_SIZE
    for i in range(0, len(filenames), batch_size):
        if cancel_event.is_set():
            break
        pdfs.extend(cache.load_pdfs(filenames[i : i + batch_size]))
        if i + batch_size < len(filenames):
            cancel_event.wait(config.LOAD_DELAY)

    log(f"{len(pdfs)}件のPDFをメモリに読み込みました。")
    return pdfs


def analyze_pdfs(
    pdfs: List[PdfData],
    llm: LLMService,
    cancel_event: threading.Event,
    log: LogFn = logger.info,
) -> AnalysisSummary:
    """Analyzes each PDF in turn and aggregates the extracted terms.

    Results always reflect exactly the documents whose analysis finished
    before cancellation was observed.
    """
    aggregator = RankingAggregator()
    succeeded = failed = 0
    cancelled = False
    total = len(pdfs)
    log(f"Gemini AIによる分析を開始... ({total}件)")

    for index, pdf in enumerate(pdfs, start=1):
        if cancel_event.is_set():
            cancelled = True
            break

        response = llm.analyze_pdf(pdf["title"], pdf["pdfBase64"])
        if response.get("success") and response.get("data"):
            aggregator.add(response["data"])
            succeeded += 1
            log(f"分析完了 ({index}/{total}): {_short(pdf['title'], 20)}")
        else:
            failed += 1
            logger.warning("Analysis failed for %s: %s", pdf["title"], response.get("error"))
            log(f"スキップ: {_short(pdf['title'], 20)}")

        # Fixed spacing between Gemini calls
        if index < total and cancel_event.wait(config.ANALYZE_DELAY):
            cancelled = True
            break

    if cancelled:
        log(f"中断しました: {succeeded}件分析済み")
    else:
        log(f"分析完了: {succeeded}件成功, {failed}件エラー")

    return AnalysisSummary(
        results=aggregator.rankings(),
        succeeded=succeeded,
        failed=failed,
        cancelled=cancelled,
    )
