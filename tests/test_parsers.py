"""Unit tests for the daybook archive parser."""

import threading
import unittest
from unittest.mock import MagicMock, patch

from kamaya_analysis.parsers.daybook import DaybookParser, parse_article_date


def make_response(text, ok=True, status_code=200):
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status_code
    resp.text = text
    return resp


LISTING_PAGE_1 = """
<html><body>
  <a href="/daybook/101/">かま屋通信 2024年3月号</a>
  <a href="https://foodhub.co.jp/daybook/102">かま屋通信 2024年2月号</a>
  <a href="/daybook/101">duplicate without slash</a>
  <a href="/daybook/page/2/?category=x">next page</a>
  <a href="/daybook/about/">not an article</a>
  <a href="/shop/">shop</a>
</body></html>
"""

LISTING_PAGE_2 = """
<html><body>
  <a href="/daybook/102/">already seen</a>
</body></html>
"""

ARTICLE_WITH_DRIVE = """
<html><head><title>Fallback | foodhub</title></head><body>
  <h1> かま屋通信 2024年3月号 </h1>
  <p>2024年3月5日 公開</p>
  <a href="/about/">about</a>
  <a href="https://drive.google.com/file/d/FILEID/view?usp=sharing">PDFを見る</a>
  <a href="/wp-content/uploads/2024/03/other.pdf">other</a>
</body></html>
"""

ARTICLE_WITH_UPLOAD = """
<html><head><title>かま屋通信 2023年12月号 | foodhub</title></head><body>
  <a href="/wp-content/uploads/2023/12/kamaya.PDF">PDF</a>
</body></html>
"""

ARTICLE_WITH_INLINE_LINK = """
<html><head><title>かま屋通信 2023年11月号</title></head><body>
  <p>こちらから https://example.com/files/kamaya-nov.pdf をご覧ください</p>
</body></html>
"""


class TestParseArticleDate(unittest.TestCase):
    def test_full_date_is_zero_padded(self):
        self.assertEqual(parse_article_date("公開日 2024年3月5日", ""), "2024-03-05")

    def test_issue_label_defaults_to_first_of_month(self):
        self.assertEqual(
            parse_article_date("<p>no date</p>", "かま屋通信 2023年11月号"), "2023-11-01"
        )

    def test_full_date_wins_over_issue_label(self):
        self.assertEqual(
            parse_article_date("2024年1月20日", "かま屋通信 2023年12月号"), "2024-01-20"
        )

    def test_no_date(self):
        self.assertEqual(parse_article_date("nothing", "untitled"), "")


class TestDaybookParser(unittest.TestCase):
    def setUp(self):
        self.parser = DaybookParser(base_url="https://foodhub.co.jp", category="かま屋通信")

    def test_listing_urls(self):
        self.assertEqual(
            self.parser._listing_url(1),
            "https://foodhub.co.jp/daybook/?category=%E3%81%8B%E3%81%BE%E5%B1%8B%E9%80%9A%E4%BF%A1",
        )
        self.assertTrue(
            self.parser._listing_url(3).startswith("https://foodhub.co.jp/daybook/page/3/?category=")
        )

    def test_extract_article_urls(self):
        urls = self.parser.extract_article_urls(LISTING_PAGE_1)
        self.assertEqual(
            urls,
            [
                "https://foodhub.co.jp/daybook/101",
                "https://foodhub.co.jp/daybook/102",
            ],
        )

    @patch("kamaya_analysis.config.PAGE_DELAY", 0)
    @patch("requests.get")
    def test_collect_stops_when_page_adds_nothing(self, mock_get):
        mock_get.side_effect = [
            make_response(LISTING_PAGE_1),
            make_response(LISTING_PAGE_2),
            make_response(LISTING_PAGE_1),
        ]
        events = []
        urls = self.parser.collect_article_urls(lambda t, p: events.append((t, p)))

        self.assertEqual(len(urls), 2)
        self.assertEqual(mock_get.call_count, 2)
        self.assertEqual(events[0][0], "progress")
        self.assertEqual(events[0][1]["current"], 2)

    @patch("requests.get")
    def test_collect_stops_on_failed_page(self, mock_get):
        mock_get.return_value = make_response("", ok=False, status_code=404)
        self.assertEqual(self.parser.collect_article_urls(), [])
        self.assertEqual(mock_get.call_count, 1)

    @patch("requests.get")
    def test_collect_honours_cancellation(self, mock_get):
        cancel = threading.Event()
        cancel.set()
        parser = DaybookParser(cancel_event=cancel)
        self.assertEqual(parser.collect_article_urls(), [])
        mock_get.assert_not_called()

    def test_parse_article_prefers_first_drive_anchor(self):
        article = self.parser.parse_article("https://foodhub.co.jp/daybook/101", ARTICLE_WITH_DRIVE)
        self.assertEqual(article["title"], "かま屋通信 2024年3月号")
        self.assertEqual(
            article["pdfUrl"], "https://drive.google.com/file/d/FILEID/view?usp=sharing"
        )
        self.assertEqual(article["pdfType"], "google-drive")
        self.assertEqual(article["date"], "2024-03-05")

    def test_parse_article_direct_upload_and_title_fallback(self):
        article = self.parser.parse_article("u", ARTICLE_WITH_UPLOAD)
        self.assertEqual(article["title"], "かま屋通信 2023年12月号")
        self.assertEqual(
            article["pdfUrl"], "https://foodhub.co.jp/wp-content/uploads/2023/12/kamaya.PDF"
        )
        self.assertEqual(article["pdfType"], "direct")
        self.assertEqual(article["date"], "2023-12-01")

    def test_parse_article_inline_pdf_link(self):
        article = self.parser.parse_article("u", ARTICLE_WITH_INLINE_LINK)
        self.assertEqual(article["pdfUrl"], "https://example.com/files/kamaya-nov.pdf")
        self.assertEqual(article["pdfType"], "direct")

    @patch("requests.get")
    def test_fetch_article_network_error_returns_empty(self, mock_get):
        import requests

        mock_get.side_effect = requests.ConnectionError("boom")
        article = self.parser.fetch_article("https://foodhub.co.jp/daybook/1")
        self.assertEqual(article["title"], "")
        self.assertIsNone(article["pdfUrl"])

    @patch("kamaya_analysis.config.DETAIL_DELAY", 0)
    def test_scrape_filters_and_sorts(self):
        details = {
            "u1": {"title": "かま屋通信 2023年1月号", "url": "u1", "date": "2023-01-01",
                   "pdfUrl": "p1", "pdfType": "direct"},
            "u2": {"title": "お知らせ", "url": "u2", "date": "2024-01-01",
                   "pdfUrl": None, "pdfType": None},
            "u3": {"title": "かま屋 通信 2024年5月号", "url": "u3", "date": "2024-05-01",
                   "pdfUrl": None, "pdfType": None},
            "u4": {"title": "", "url": "u4", "date": "", "pdfUrl": None, "pdfType": None},
        }
        events = []
        with patch.object(self.parser, "collect_article_urls", return_value=list(details)), \
                patch.object(self.parser, "fetch_article", side_effect=lambda u: details[u]):
            articles = self.parser.scrape(lambda t, p: events.append((t, p)))

        self.assertEqual([a["url"] for a in articles], ["u3", "u1"])
        complete = [p for t, p in events if t == "complete"][0]
        self.assertEqual(complete["total"], 2)
        self.assertEqual(complete["withPdf"], 1)


if __name__ == "__main__":
    unittest.main()
