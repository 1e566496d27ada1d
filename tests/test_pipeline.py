"""Unit tests for stage orchestration and cancellation."""

import os
import tempfile
import threading
import unittest
from unittest.mock import MagicMock, patch

from kamaya_analysis.pipeline import analyze_pdfs, download_pdfs, load_cached_pdfs
from kamaya_analysis.services.cache import PdfCache


def article(title, pdf_url="https://x/a.pdf"):
    return {"title": title, "url": "u", "date": "", "pdfUrl": pdf_url, "pdfType": "direct"}


def pdf(title):
    return {"title": title, "pdfBase64": "JVBERi0=", "size": 5}


@patch("kamaya_analysis.config.ANALYZE_DELAY", 0)
class TestAnalyzePdfs(unittest.TestCase):
    def test_aggregates_successes_and_counts_failures(self):
        llm = MagicMock()
        llm.analyze_pdf.side_effect = [
            {"success": True, "data": {"ingredients": ["かぶ"], "dishes": [], "cookingMethods": [], "seasons": []}},
            {"success": False, "error": "JSONを抽出できませんでした"},
            {"success": True, "data": {"ingredients": ["かぶ", "柚子"], "dishes": [], "cookingMethods": [], "seasons": ["冬"]}},
        ]
        summary = analyze_pdfs([pdf("a"), pdf("b"), pdf("c")], llm, threading.Event())

        self.assertFalse(summary.cancelled)
        self.assertEqual(summary.succeeded, 2)
        self.assertEqual(summary.failed, 1)
        self.assertEqual(summary.results["ingredients"][0], {"name": "かぶ", "count": 2})
        self.assertEqual(summary.results["seasons"], [{"name": "冬", "count": 1}])

    def test_cancellation_keeps_processed_documents(self):
        cancel = threading.Event()
        calls = []

        def analyze(title, _data):
            calls.append(title)
            if len(calls) == 2:
                cancel.set()
            return {"success": True, "data": {"ingredients": [title], "dishes": [], "cookingMethods": [], "seasons": []}}

        llm = MagicMock()
        llm.analyze_pdf.side_effect = analyze
        summary = analyze_pdfs([pdf("a"), pdf("b"), pdf("c"), pdf("d")], llm, cancel)

        self.assertTrue(summary.cancelled)
        self.assertEqual(calls, ["a", "b"])
        self.assertEqual(summary.succeeded, 2)
        self.assertEqual(
            [i["name"] for i in summary.results["ingredients"]], ["a", "b"]
        )

    def test_cancelled_before_start(self):
        cancel = threading.Event()
        cancel.set()
        llm = MagicMock()
        summary = analyze_pdfs([pdf("a")], llm, cancel)
        self.assertTrue(summary.cancelled)
        llm.analyze_pdf.assert_not_called()
        self.assertEqual(summary.results["ingredients"], [])


@patch("kamaya_analysis.config.DOWNLOAD_DELAY", 0)
@patch("kamaya_analysis.config.CACHED_DOWNLOAD_DELAY", 0)
class TestDownloadPdfs(unittest.TestCase):
    def test_counts_each_outcome(self):
        downloader = MagicMock()
        downloader.download.side_effect = [
            {"success": True, "title": "a", "pdfBase64": "x", "size": 1, "filename": "a.pdf", "cached": True},
            {"success": True, "title": "b", "pdfBase64": "y", "size": 1, "filename": "b.pdf", "cached": False},
            {"success": False, "error": "Access denied - no permission to view this PDF", "skipped": True},
            RuntimeError("boom"),
        ]
        articles = [article("a"), article("b"), article("no pdf", None), article("c"), article("d")]
        summary = download_pdfs(articles, downloader, threading.Event())

        self.assertEqual(downloader.download.call_count, 4)
        self.assertEqual((summary.cached, summary.downloaded, summary.skipped), (1, 1, 2))
        self.assertEqual([p["title"] for p in summary.pdfs], ["a", "b"])
        self.assertFalse(summary.cancelled)

    def test_cancellation_returns_partial_results(self):
        cancel = threading.Event()

        def download(_url, title, _kind):
            cancel.set()
            return {"success": True, "title": title, "pdfBase64": "x", "size": 1,
                    "filename": f"{title}.pdf", "cached": False}

        downloader = MagicMock()
        downloader.download.side_effect = download
        summary = download_pdfs([article("a"), article("b")], downloader, cancel)

        self.assertTrue(summary.cancelled)
        self.assertEqual([p["title"] for p in summary.pdfs], ["a"])


@patch("kamaya_analysis.config.LOAD_DELAY", 0)
@patch("kamaya_analysis.config.LOAD_BATCH_SIZE", 2)
class TestLoadCachedPdfs(unittest.TestCase):
    def test_loads_every_cached_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            cache = PdfCache(tmp)
            for name in ("a.pdf", "b.pdf", "c.pdf"):
                cache.write(name, b"%PDF")
            with open(os.path.join(tmp, "readme.txt"), "w", encoding="utf-8") as f:
                f.write("skip me")

            pdfs = load_cached_pdfs(cache)

        self.assertEqual([p["filename"] for p in pdfs], ["a.pdf", "b.pdf", "c.pdf"])

    def test_empty_cache(self):
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(load_cached_pdfs(PdfCache(os.path.join(tmp, "none"))), [])


if __name__ == "__main__":
    unittest.main()
