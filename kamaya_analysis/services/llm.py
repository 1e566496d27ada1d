"""
LLM Service Module.

This module provides the LLMService class, which interfaces with the Google Gemini API
to extract ingredients, dishes, cooking methods and seasonal terms from newsletter
PDFs, and to draft persona-driven content from the aggregated results.
"""

import base64
import json
import logging
import re
from typing import Any, Dict, Optional

from google import genai
from google.genai import types

from kamaya_analysis import config
from kamaya_analysis.models import AnalysisData, AnalysisResponse

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

DEFAULT_PERSONA = "あなたは「かま屋通信」のライターです。親しみやすいトーンで書いてください。"

GENERATION_INSTRUCTIONS: Dict[str, str] = {
    "summary": """
上記の内容を元に、この記事の要約（サマリー）を作成してください。
- 300文字程度
- 箇条書きで主なトピックを3つ挙げる
""",
    "blog": """
上記の内容を元に、Webサイトに掲載するブログ記事のドラフトを作成してください。
- タイトル案を3つ
- 構成: 導入、本文（見出し付き）、まとめ
- 季節感を大切に
""",
    "sns": """
上記の内容を元に、X（旧Twitter）への投稿案を作成してください。
- 投稿案を3パターン（共感重視、情報重視、問いかけ）
- ハッシュタグを含める
- 140文字以内
""",
    "video_prompt": """
この記事を紹介するショート動画（60秒）を作成するための構成案と、動画生成AIへのプロンプトを作成してください。
- シーン構成
- ナレーション原稿
- AI画像生成/動画生成用プロンプト（英語）
""",
}

# Characters of article text passed as context to generation
MAX_EXCERPT_LENGTH = 10000


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parses the first brace-delimited span of a free-text reply."""
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    return json.loads(match.group(0))


def load_persona_prompt(path: Optional[str] = None) -> str:
    """Reads the persona prompt file, falling back to the default persona."""
    prompt_path = path or config.PERSONA_PROMPT_PATH
    try:
        with open(prompt_path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        logger.info("Persona prompt not found at %s. Using default.", prompt_path)
    except OSError as e:
        logger.error("Failed to load persona prompt: %s", e)
    return DEFAULT_PERSONA


class LLMService:
    """
    Service for interacting with the Google Gemini API.

    One instance is bound to one caller-supplied API key.
    """

    def __init__(self, api_key: str, model: str = config.GEMINI_MODEL):
        self.api_key = api_key
        self.model = model
        self.client: Optional[genai.Client] = None
        try:
            self.client = genai.Client(api_key=api_key)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to initialize Gemini client: %s", e)
            self.client = None

    _ANALYSIS_PROMPT = """あなたは食材分析の専門家です。このPDFは「かま屋通信」というニュースレターです。PDFの内容を分析してください。

【分析内容】
1. **食材リスト**: PDFに登場する食材（野菜、肉、魚、穀物、調味料など）をすべて抽出してください
2. **メニュー/料理名リスト**: PDFに登場する料理名やメニュー名をすべて抽出してください
3. **調理法**: 登場する調理法（焼く、煮る、蒸すなど）を抽出してください
4. **季節/イベント**: 言及されている季節や食に関するイベントを抽出してください

【出力形式】
必ず以下のJSON形式で出力してください。他の説明文は不要です：
{
  "ingredients": ["食材1", "食材2", ...],
  "dishes": ["料理名1", "料理名2", ...],
  "cookingMethods": ["調理法1", "調理法2", ...],
  "seasons": ["季節/イベント1", ...]
}"""

    def analyze_pdf(self, title: str, pdf_base64: str) -> AnalysisResponse:
        """Sends one PDF to Gemini and returns the extracted term lists."""
        if not self.client:
            return {"success": False, "title": title, "error": "Gemini client not initialized"}

        logger.info("Analyzing PDF: %s", title)
        try:
            pdf_part = types.Part.from_bytes(
                data=base64.b64decode(pdf_base64), mime_type="application/pdf"
            )
            response = self.client.models.generate_content(
                model=self.model,
                contents=[pdf_part, self._ANALYSIS_PROMPT],
            )
            response_text = response.text if response.text else ""
            parsed = extract_json_object(response_text)
            if parsed is None:
                return {"success": False, "title": title, "error": "JSONを抽出できませんでした"}

            data: AnalysisData = {
                "ingredients": parsed.get("ingredients") or [],
                "dishes": parsed.get("dishes") or [],
                "cookingMethods": parsed.get("cookingMethods") or [],
                "seasons": parsed.get("seasons") or [],
            }
            return {"success": True, "title": title, "data": data}

        except (json.JSONDecodeError, ValueError) as e:
            logger.error("Failed to parse Gemini response for %s: %s", title, e)
            return {"success": False, "title": title, "error": str(e)}
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Gemini API error for %s: %s", title, e)
            return {"success": False, "title": title, "error": str(e)}

    def build_generation_prompt(
        self,
        analysis_data: Any,
        content_type: str,
        pdf_text: Optional[str] = None,
        persona: Optional[str] = None,
    ) -> str:
        """Returns the persona prompt plus instructions and context for one content type."""
        if content_type not in GENERATION_INSTRUCTIONS:
            raise ValueError(f"Invalid type: {content_type}")

        excerpt = pdf_text[:MAX_EXCERPT_LENGTH] if pdf_text else "なし"
        context = f"""
【元記事の情報】
分析データ: {json.dumps(analysis_data, ensure_ascii=False)}
記事テキスト（抜粋）: {excerpt}
"""
        prompt = f"{persona if persona is not None else load_persona_prompt()}\n\n"
        return prompt + GENERATION_INSTRUCTIONS[content_type] + context

    def generate_content(
        self, analysis_data: Any, content_type: str, pdf_text: Optional[str] = None
    ) -> str:
        """Drafts a summary, blog post, SNS posts or video plan.

        Raises ValueError for an unknown content type; API errors propagate.
        """
        prompt = self.build_generation_prompt(analysis_data, content_type, pdf_text)
        if not self.client:
            raise RuntimeError("Gemini client not initialized")

        logger.info("Generating %s content...", content_type)
        response = self.client.models.generate_content(model=self.model, contents=prompt)
        return response.text if response.text else ""
