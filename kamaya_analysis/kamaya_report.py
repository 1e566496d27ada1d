"""
Kamaya Newsletter Analysis
This script scrapes the "かま屋通信" archive, downloads each issue's PDF,
extracts ingredients, dishes, cooking methods and seasonal terms with
Google Gemini, and writes the aggregated rankings as JSON, CSV and HTML.
"""

import argparse
import json
import logging
import os
import signal
import sys
import threading
from typing import Any, List, Optional

from kamaya_analysis import config
from kamaya_analysis.models import AnalysisResults, Article
from kamaya_analysis.parsers.daybook import DaybookParser
from kamaya_analysis.pipeline import analyze_pdfs, download_pdfs, load_cached_pdfs
from kamaya_analysis.services.cache import PdfCache
from kamaya_analysis.services.downloader import PdfDownloader
from kamaya_analysis.services.llm import LLMService
from kamaya_analysis.services.report import (
    InvalidReportError,
    ReportService,
    build_report,
    load_report,
    report_filename,
    to_csv,
    to_json,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

ARTICLES_FILENAME = "articles.json"


def install_cancel_handler(cancel_event: threading.Event) -> None:
    """Turns Ctrl-C into a cooperative cancel so partial results are kept."""

    def handler(_signum: int, _frame: Any) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Cancel requested; finishing current item...")
        cancel_event.set()

    signal.signal(signal.SIGINT, handler)


def save_articles(articles: List[Article], output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, ARTICLES_FILENAME)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(articles, f, ensure_ascii=False, indent=2)
    logger.info("Saved %d articles to %s", len(articles), path)
    return path


def read_articles(path: str) -> List[Article]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_reports(
    results: AnalysisResults, output_dir: str, meta: Optional[dict] = None
) -> List[str]:
    """Writes the JSON, CSV and HTML renditions of the rankings."""
    os.makedirs(output_dir, exist_ok=True)
    written = []

    json_path = os.path.join(output_dir, report_filename("json"))
    with open(json_path, "w", encoding="utf-8") as f:
        f.write(to_json(build_report(results)))
    written.append(json_path)

    csv_path = os.path.join(output_dir, report_filename("csv"))
    with open(csv_path, "wb") as f:
        f.write(to_csv(results))
    written.append(csv_path)

    html_path = os.path.join(output_dir, report_filename("html"))
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(ReportService().generate_report_html(results, meta))
    written.append(html_path)

    for path in written:
        logger.info("Report written: %s", path)
    return written


def _require_api_key(args: argparse.Namespace) -> Optional[str]:
    api_key = args.api_key or config.GEMINI_API_KEY
    if not api_key:
        logger.error("Error: GEMINI_KEY not set and --api-key not given.")
    return api_key


def cmd_scrape(args: argparse.Namespace, cancel_event: threading.Event) -> int:
    articles = DaybookParser(cancel_event=cancel_event).scrape()
    save_articles(articles, args.output)
    return 0


def cmd_download(args: argparse.Namespace, cancel_event: threading.Event) -> int:
    articles_path = args.articles or os.path.join(args.output, ARTICLES_FILENAME)
    try:
        articles = read_articles(articles_path)
    except FileNotFoundError:
        logger.error("Articles file not found: %s. Run 'scrape' first.", articles_path)
        return 1

    if not any(a.get("pdfUrl") for a in articles):
        logger.error("PDFリンクのある記事が見つかりません。")
        return 1

    downloader = PdfDownloader(cache=PdfCache(args.download_dir))
    download_pdfs(articles, downloader, cancel_event)
    return 0


def cmd_analyze(args: argparse.Namespace, cancel_event: threading.Event) -> int:
    api_key = _require_api_key(args)
    if not api_key:
        return 1

    pdfs = load_cached_pdfs(PdfCache(args.download_dir), cancel_event)
    if not pdfs:
        logger.error("分析対象のPDFがありません。")
        return 1

    summary = analyze_pdfs(pdfs, LLMService(api_key), cancel_event)
    write_reports(
        summary.results,
        args.output,
        {"analyzed": summary.succeeded, "errors": summary.failed, "cancelled": summary.cancelled},
    )
    return 0


def cmd_run(args: argparse.Namespace, cancel_event: threading.Event) -> int:
    """Scrape, download and analyze in one go."""
    api_key = _require_api_key(args)
    if not api_key:
        return 1

    articles = DaybookParser(cancel_event=cancel_event).scrape()
    save_articles(articles, args.output)
    if cancel_event.is_set():
        return 0

    downloaded = download_pdfs(
        articles, PdfDownloader(cache=PdfCache(args.download_dir)), cancel_event
    )
    if cancel_event.is_set() or not downloaded.pdfs:
        return 0

    summary = analyze_pdfs(downloaded.pdfs, LLMService(api_key), cancel_event)
    write_reports(
        summary.results,
        args.output,
        {
            "articles": len(articles),
            "pdfs": len(downloaded.pdfs),
            "skipped": downloaded.skipped,
            "analyzed": summary.succeeded,
            "errors": summary.failed,
            "cancelled": summary.cancelled,
        },
    )
    return 0


def cmd_load_report(args: argparse.Namespace, _cancel_event: threading.Event) -> int:
    """Re-renders a previously exported JSON report."""
    try:
        with open(args.report, "rb") as f:
            report = load_report(f.read())
    except (OSError, InvalidReportError) as e:
        logger.error("Could not load report %s: %s", args.report, e)
        return 1

    logger.info("Loaded report generated at %s", report["generatedAt"] or "unknown")
    results: AnalysisResults = {
        "ingredients": report["ingredients"],
        "dishes": report["dishes"],
        "cookingMethods": report["cookingMethods"],
        "seasons": report["seasons"],
    }
    write_reports(results, args.output, {"generatedAt": report["generatedAt"]})
    return 0


def cmd_generate(args: argparse.Namespace, _cancel_event: threading.Event) -> int:
    api_key = _require_api_key(args)
    if not api_key:
        return 1

    try:
        with open(args.report, "rb") as f:
            report = load_report(f.read())
    except (OSError, InvalidReportError) as e:
        logger.error("Could not load report %s: %s", args.report, e)
        return 1

    pdf_text = None
    if args.text:
        with open(args.text, "r", encoding="utf-8") as f:
            pdf_text = f.read()

    try:
        content = LLMService(api_key).generate_content(report, args.type, pdf_text)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Generate error: %s", e)
        return 1
    print(content)
    return 0


def cmd_serve(args: argparse.Namespace, _cancel_event: threading.Event) -> int:
    from kamaya_analysis.api.app import create_app  # pylint: disable=import-outside-toplevel

    create_app(args.download_dir).run(host=args.host, port=args.port, threaded=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kamaya-report", description="Analyze the かま屋通信 newsletter archive."
    )
    parser.add_argument("--output", default="output", help="Directory for articles and reports")
    parser.add_argument("--download-dir", default=config.DOWNLOAD_DIR, help="PDF cache directory")
    parser.add_argument("--api-key", default=None, help="Gemini API key (defaults to GEMINI_KEY)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("scrape", help="Collect newsletter articles").set_defaults(func=cmd_scrape)

    p = sub.add_parser("download", help="Download PDFs of scraped articles")
    p.add_argument("--articles", default=None, help="Articles JSON (defaults to output/articles.json)")
    p.set_defaults(func=cmd_download)

    sub.add_parser("analyze", help="Analyze cached PDFs").set_defaults(func=cmd_analyze)
    sub.add_parser("run", help="Scrape, download and analyze").set_defaults(func=cmd_run)

    p = sub.add_parser("load-report", help="Re-render a JSON report")
    p.add_argument("report")
    p.set_defaults(func=cmd_load_report)

    p = sub.add_parser("generate", help="Draft content from a JSON report")
    p.add_argument("report")
    p.add_argument("--type", required=True, choices=["summary", "blog", "sns", "video_prompt"])
    p.add_argument("--text", default=None, help="Plain-text article excerpt")
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=5000)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution entry point."""
    args = build_parser().parse_args(argv)
    cancel_event = threading.Event()
    if args.command != "serve":
        install_cancel_handler(cancel_event)
    return args.func(args, cancel_event)


if __name__ == "__main__":
    sys.exit(main())
