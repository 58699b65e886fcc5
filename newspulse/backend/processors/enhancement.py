#!/usr/bin/env python3
"""
Content Enhancement

Gemini-backed translation, headline transliteration and long-form article
generation. Every result is written once to the shared cache so the model is
called at most once per (article, language) across all sessions. Failures
never reach the caller: translations pass the original text through and
enhanced content degrades to the raw article body.
"""

import asyncio
import logging
import time
from functools import partial
from typing import Dict, Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from newspulse.backend.monitoring.usage_tracker import AIUsageTracker, usage_tracker
from newspulse.shared.config.config_loader import ConfigLoader
from newspulse.shared.types.results import EnhancedContent
from newspulse.shared.utils.fallback import retry_async

logger = logging.getLogger(__name__)

TITLE_LANGUAGE_CODE = "ur-ro-title"
SUMMARY_UNAVAILABLE = "Summary unavailable."

TRANSLATION_PROMPTS: Dict[str, str] = {
    'hi': 'Translate to Hindi: "{text}"',
    'ur': 'Translate to Urdu: "{text}"',
    'te': 'Translate to Telugu: "{text}"',
    'ur-ro': 'Transliterate to Roman Urdu: "{text}"',
}

TITLE_PROMPT = 'Translate headline to Roman Urdu (no quotes, keep it short): "{title}"'

ENHANCEMENT_PROMPT = """You are a senior journalist.
1. Write a comprehensive full-length news article (approx 300 words) based on: "{content}"
2. Create a 3-sentence summary.
3. Translate summary to Roman Urdu.

Return JSON:
{{ "fullArticle": "...", "shortSummary": "...", "romanUrduSummary": "..." }}
"""


class EnhancedContentResponse(BaseModel):
    """Structured JSON returned by the enhancement prompt."""
    model_config = ConfigDict(populate_by_name=True)

    full_article: str = Field(alias="fullArticle", min_length=1)
    short_summary: str = Field(alias="shortSummary", min_length=1)
    roman_urdu_summary: str = Field(alias="romanUrduSummary", default=SUMMARY_UNAVAILABLE)

    def to_content(self) -> EnhancedContent:
        return EnhancedContent(
            full_article=self.full_article,
            short_summary=self.short_summary,
            roman_urdu_summary=self.roman_urdu_summary
        )


def summary_language_code(language: str) -> str:
    """Cache code for a translated summary, kept apart from body translations."""
    return f"{language}-summary"


class ContentEnhancer:
    """AI text features behind the shared translation and enhancement caches."""

    def __init__(self, store, api_key: Optional[str] = None, client: Optional[genai.Client] = None,
                 model: Optional[str] = None, retry_attempts: Optional[int] = None,
                 retry_base_delay: Optional[float] = None, tracker: Optional[AIUsageTracker] = None):
        self.store = store
        self.client = client or (genai.Client(api_key=api_key) if api_key else None)
        self.model = model or ConfigLoader.get('ai.text_model', 'gemini-2.5-flash')
        self.retry_attempts = retry_attempts or ConfigLoader.get('ai.retry.attempts', 3)
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None
            else ConfigLoader.get('ai.retry.base_delay_seconds', 1.0)
        )
        self.tracker = tracker or usage_tracker

        if self.client is None:
            logger.info("GEMINI_API_KEY not set - translation and enhancement disabled")

    @property
    def available(self) -> bool:
        return self.client is not None

    async def translate_text(self, text: str, language: str, article_id: Optional[str] = None) -> str:
        """Translate (or transliterate, for ur-ro) ``text``; the original text is returned on failure."""
        return await self._translate(text, language, article_id, language)

    async def translate_summary(self, summary: str, language: str, article_id: Optional[str] = None) -> str:
        return await self._translate(summary, language, article_id, summary_language_code(language))

    async def _translate(self, text: str, language: str, article_id: Optional[str], cache_code: str) -> str:
        prompt_template = TRANSLATION_PROMPTS.get(language)
        if prompt_template is None or not text:
            return text

        if article_id:
            cached = await asyncio.to_thread(self.store.get_translation, article_id, cache_code)
            if cached:
                self.tracker.record_cache_hit("translation")
                return cached

        if not self.available:
            return text

        try:
            translated = await self._generate(prompt_template.format(text=text), operation="translation")
        except Exception as e:
            logger.warning(f"Translation to {language} failed: {e}")
            return text

        if not translated:
            return text
        if article_id:
            await asyncio.to_thread(self.store.save_translation, article_id, cache_code, translated)
        return translated

    async def roman_urdu_title(self, title: str, article_id: str) -> str:
        """Roman Urdu headline, or "" when it cannot be produced."""
        cached = await asyncio.to_thread(self.store.get_translation, article_id, TITLE_LANGUAGE_CODE)
        if cached:
            self.tracker.record_cache_hit("title")
            return cached

        if not self.available or not title:
            return ""

        try:
            text = await self._generate(TITLE_PROMPT.format(title=title), operation="title")
        except Exception as e:
            logger.warning(f"Roman Urdu headline failed for {article_id}: {e}")
            return ""

        text = (text or "").strip()
        if text:
            await asyncio.to_thread(self.store.save_translation, article_id, TITLE_LANGUAGE_CODE, text)
        return text

    async def enhanced_content(self, content: str, article_id: str) -> EnhancedContent:
        """
        Full article, three-sentence summary and Roman Urdu summary.

        Only a validated response is cached; the degraded result is not, so a
        later call can still succeed.
        """
        cached = await asyncio.to_thread(self.store.get_enhanced_content, article_id)
        if cached:
            self.tracker.record_cache_hit("enhancement")
            return cached

        fallback = EnhancedContent(full_article=content, short_summary=content,
                                   roman_urdu_summary=SUMMARY_UNAVAILABLE)
        if not self.available:
            return fallback

        try:
            raw = await self._generate(
                ENHANCEMENT_PROMPT.format(content=content),
                operation="enhancement",
                json_mode=True
            )
            if not raw:
                raise ValueError("Empty AI response")
            enhanced = EnhancedContentResponse.model_validate_json(raw).to_content()
        except (ValidationError, ValueError) as e:
            logger.warning(f"Invalid enhanced content for {article_id}: {e}")
            return fallback
        except Exception as e:
            logger.warning(f"Enhanced content failed for {article_id}: {e}")
            return fallback

        await asyncio.to_thread(self.store.save_enhanced_content, article_id, enhanced)
        return enhanced

    async def _generate(self, prompt: str, operation: str, json_mode: bool = False) -> Optional[str]:
        config = types.GenerateContentConfig(response_mime_type="application/json") if json_mode else None
        return await retry_async(
            partial(self._generate_once, prompt, operation, config),
            attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            description=f"Gemini {operation}"
        )

    async def _generate_once(self, prompt: str, operation: str,
                             config: Optional[types.GenerateContentConfig]) -> Optional[str]:
        start = time.time()
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config
            )
        except Exception as e:
            self.tracker.record_call(self.model, operation, time.time() - start, success=False,
                                     error_message=str(e))
            raise
        self.tracker.record_call(self.model, operation, time.time() - start)
        return response.text
