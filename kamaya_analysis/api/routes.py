"""API blueprint: scraping, PDF retrieval, analysis, generation and reports."""
from __future__ import annotations

import json
import logging
import queue
import threading
from typing import Any, Dict, Iterable

from flask import Blueprint, Response, current_app, request, stream_with_context

from kamaya_analysis.api.errors import fail, ok
from kamaya_analysis.api.schemas import (
    AnalyzeIn,
    ExtractIn,
    GenerateIn,
    LoadPdfsIn,
    ResultsIn,
)
from kamaya_analysis.models import AnalysisResults
from kamaya_analysis.parsers.daybook import DaybookParser
from kamaya_analysis.services.cache import PdfCache
from kamaya_analysis.services.downloader import PdfDownloader
from kamaya_analysis.services.llm import LLMService
from kamaya_analysis.services.report import (
    ReportService,
    build_report,
    load_report,
    report_filename,
    to_csv,
    to_json,
)

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)

_DONE = object()


def _cache() -> PdfCache:
    return PdfCache(current_app.config["DOWNLOAD_DIR"])


def _json_object() -> Dict[str, Any]:
    """Returns the JSON request body when it is an object, else an empty dict."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _sse(event_type: str, payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps({'type': event_type, **payload}, ensure_ascii=False)}\n\n"


def _scrape_events(cancel_event: threading.Event) -> Iterable[str]:
    """Runs the crawler on a worker thread and relays its events as SSE frames."""
    events: "queue.Queue[Any]" = queue.Queue()

    def run() -> None:
        try:
            parser = DaybookParser(cancel_event=cancel_event)
            parser.scrape(on_event=lambda t, p: events.put(_sse(t, p)))
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Scrape error: %s", e)
            events.put(_sse("error", {"error": str(e)}))
        finally:
            events.put(_DONE)

    worker = threading.Thread(target=run, daemon=True)
    worker.start()
    try:
        while True:
            item = events.get()
            if item is _DONE:
                break
            yield item
    finally:
        # Client went away or stream finished; stop the crawl at its next check
        cancel_event.set()


@bp.get("/health")
def health():
    return {"ok": True}


@bp.get("/scrape")
def scrape():
    resp = Response(
        stream_with_context(_scrape_events(threading.Event())),
        mimetype="text/event-stream",
    )
    resp.headers["Cache-Control"] = "no-cache"
    resp.headers["Connection"] = "keep-alive"
    resp.headers["X-Accel-Buffering"] = "no"
    return resp


@bp.post("/extract")
def extract():
    payload = ExtractIn.model_validate(request.get_json(silent=True) or {})
    downloader = PdfDownloader(cache=_cache())
    result = downloader.download(payload.pdfUrl, payload.title, payload.pdfType)
    return result


@bp.get("/load-pdfs")
def list_cached_pdfs():
    pdfs = _cache().list_pdfs()
    return ok({"count": len(pdfs), "pdfs": pdfs})


@bp.post("/load-pdfs")
def load_cached_pdfs():
    body = _json_object()
    if not isinstance(body.get("filenames"), list):
        return fail("filenames array is required")
    payload = LoadPdfsIn.model_validate(body)
    pdfs = _cache().load_pdfs(payload.filenames)
    return ok({"count": len(pdfs), "pdfs": pdfs})


@bp.post("/analyze")
def analyze():
    body = _json_object()
    pdf = body.get("pdf")
    if not isinstance(pdf, dict) or not pdf.get("pdfBase64"):
        return fail("PDF データが必要です")
    payload = AnalyzeIn.model_validate(body)
    if not payload.apiKey:
        return fail("Gemini API キーが必要です")

    response = LLMService(payload.apiKey).analyze_pdf(payload.pdf.title, payload.pdf.pdfBase64)
    return dict(response)


@bp.post("/generate")
def generate():
    body = _json_object()
    if not body.get("apiKey"):
        return fail("API Key is required")
    if body.get("type") not in ("summary", "blog", "sns", "video_prompt"):
        return fail("Invalid type")
    payload = GenerateIn.model_validate(body)

    try:
        content = LLMService(payload.apiKey).generate_content(
            payload.analysisData, payload.type, payload.pdfText
        )
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Generate error: %s", e)
        return fail(str(e), 500)
    return ok({"content": content})


@bp.post("/report")
def download_report():
    results: AnalysisResults = ResultsIn.model_validate(request.get_json(silent=True) or {}).model_dump()  # type: ignore[assignment]
    fmt = request.args.get("format", "json")

    if fmt == "csv":
        body: Any = to_csv(results)
        mimetype = "text/csv; charset=utf-8"
    elif fmt == "html":
        body = ReportService().generate_report_html(results)
        mimetype = "text/html; charset=utf-8"
    elif fmt == "json":
        body = to_json(build_report(results))
        mimetype = "application/json"
    else:
        return fail(f"Unsupported format: {fmt}")

    resp = Response(body, mimetype=mimetype)
    resp.headers["Content-Disposition"] = f'attachment; filename="{report_filename(fmt)}"'
    return resp


@bp.post("/report/load")
def restore_report():
    upload = request.files.get("file")
    content = upload.read() if upload is not None else request.get_data()

    report = load_report(content)
    logger.info("Report loaded (generated at %s)", report["generatedAt"] or "unknown")
    results = {key: value for key, value in report.items() if key != "generatedAt"}
    return ok({"generatedAt": report["generatedAt"], "results": results})
