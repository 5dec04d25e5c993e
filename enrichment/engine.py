"""Batched LLM enrichment: translate titles, summarize bodies, move to the reading window.

Items are sent to the model in batches of ``ENRICH_BATCH_SIZE`` with a strict
JSON-array response format. When a batch call fails, or its response cannot
be parsed, every affected item is retried with one call per item, so batching
only saves requests and never decides whether an item gets enriched.
"""

import json
import logging
import re
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import ENRICH_BATCH_SIZE, PROCESS_LIMIT
from db.database import get_session
from db.models import News
from db.store import mark_enriched, news_to_dict
from enrichment.llm import LLMClient, LLMSettings
from enrichment.prompts import batch_prompt, summarize_prompt, template_design_prompt, translate_prompt

logger = logging.getLogger(__name__)

Enrichment = tuple[str, str]  # (trans_title, trans_summary)


def _extract_json_array(text: str) -> list[Any]:
    """Extract a JSON array from text that may contain surrounding prose or markdown."""
    # Try direct parse first
    try:
        parsed = json.loads(text)
        if isinstance(parsed, list):
            return parsed
    except json.JSONDecodeError:
        pass

    # Try extracting from markdown code block
    m = re.search(r"```(?:json)?\s*\n?(.*?)```", text, re.DOTALL)
    if m:
        try:
            parsed = json.loads(m.group(1).strip())
            if isinstance(parsed, list):
                return parsed
        except json.JSONDecodeError:
            pass

    # Try finding a bare JSON array in the text
    m = re.search(r"\[[\s\S]*\]", text)
    if m:
        try:
            parsed = json.loads(m.group(0))
            if isinstance(parsed, list):
                return parsed
        except json.JSONDecodeError:
            pass

    raise json.JSONDecodeError("No JSON array found in response", text, 0)


def _strip_code_fence(text: str) -> str:
    m = re.search(r"```(?:html)?\s*\n?(.*?)```", text, re.DOTALL)
    return m.group(1).strip() if m else text.strip()


def _as_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _is_complete(item: dict[str, Any], trans_title: str, trans_summary: str) -> bool:
    """Enriched fields may be empty only when their source text is empty."""
    title = item.get("title") or ""
    body = item.get("content") or title
    if title and not trans_title:
        return False
    if body and not trans_summary:
        return False
    return True


class EnrichmentEngine:
    """Translate + summarize news items and place them in the reading window."""

    def __init__(self, llm: LLMClient | None = None, batch_size: int = ENRICH_BATCH_SIZE) -> None:
        self._llm = llm or LLMClient(LLMSettings.from_env())
        self.batch_size = batch_size

    @property
    def llm(self) -> LLMClient:
        return self._llm

    def reload_config(self) -> LLMSettings:
        """Rebuild the LLM client from the saved AI config and swap it in."""
        session = get_session()
        try:
            settings = LLMSettings.from_db(session)
        finally:
            session.close()
        self._llm = LLMClient(settings)
        logger.info("AI config loaded (provider=%s, model=%s, target_lang=%s)",
                    settings.provider, settings.model, settings.target_lang)
        return settings

    # --- Single calls ---

    def translate(self, text: str, target_lang: str | None = None) -> str:
        llm = self._llm
        return self._translate(llm, text, target_lang or llm.settings.target_lang)

    def summarize(self, text: str, target_lang: str | None = None) -> str:
        llm = self._llm
        return self._summarize(llm, text, target_lang or llm.settings.target_lang)

    @staticmethod
    def _translate(llm: LLMClient, text: str, target_lang: str) -> str:
        if not text:
            return ""
        return llm.chat(translate_prompt(text, target_lang), temperature=0.3)

    @staticmethod
    def _summarize(llm: LLMClient, text: str, target_lang: str) -> str:
        if not text:
            return ""
        return llm.chat(summarize_prompt(text, target_lang), temperature=0.5)

    def generate_email_template(self, description: str, current_template: str = "") -> str:
        """Ask the model for a Jinja2 HTML digest template."""
        text = self._llm.chat(template_design_prompt(description, current_template), temperature=0.7)
        return _strip_code_fence(text)

    # --- Enrichment paths ---

    def _enrich_one(self, llm: LLMClient, item: dict[str, Any]) -> Enrichment:
        """Per-item path: translate the title, summarize the body (or the title)."""
        lang = llm.settings.target_lang
        title = item.get("title") or ""
        trans_title = self._translate(llm, title, lang)
        trans_summary = self._summarize(llm, item.get("content") or title, lang)
        return trans_title, trans_summary

    def _enrich_batch(self, llm: LLMClient, batch: list[dict[str, Any]]) -> dict[int, Enrichment]:
        """One call for the whole batch. Returns results keyed by 0-based position.

        Raises when the call fails or nothing usable can be parsed; entries
        that are missing or incomplete are simply absent from the result.
        """
        text = llm.chat(batch_prompt(batch, llm.settings.target_lang), temperature=0.3)
        entries = _extract_json_array(text)

        results: dict[int, Enrichment] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            index = _as_index(entry.get("index"))
            if index is None or not 1 <= index <= len(batch):
                continue
            trans_title = entry.get("trans_title")
            trans_summary = entry.get("trans_summary")
            if not isinstance(trans_title, str) or not isinstance(trans_summary, str):
                continue
            trans_title, trans_summary = trans_title.strip(), trans_summary.strip()
            if _is_complete(batch[index - 1], trans_title, trans_summary):
                results[index - 1] = (trans_title, trans_summary)

        if not results:
            raise ValueError(f"no usable entries in batch response ({len(entries)} parsed)")
        return results

    def _store(self, session: Session, item: dict[str, Any], enrichment: Enrichment) -> bool:
        trans_title, trans_summary = enrichment
        try:
            updated = mark_enriched(session, item["id"], trans_title, trans_summary)
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to update news %s", item["id"])
            return False
        if updated:
            logger.info("Translated and moved to reading: %s", item.get("title"))
        else:
            logger.debug("News %s already enriched or deleted, skipping", item["id"])
        return updated

    # --- Public operations ---

    def process_and_move_to_reading(self, items: list[dict[str, Any]]) -> int:
        """Enrich ``items`` and move each successful one into the reading window.

        Each item needs ``id``, ``title`` and ``content``. Returns the number of
        items enriched; failures stay untranslated for the next pass.
        """
        if not items:
            return 0
        llm = self._llm
        if not llm.configured:
            logger.warning("LLM not configured, leaving %d items unprocessed", len(items))
            return 0

        enriched = 0
        session = get_session()
        try:
            for start in range(0, len(items), self.batch_size):
                batch = items[start : start + self.batch_size]
                batch_no = start // self.batch_size + 1
                try:
                    results = self._enrich_batch(llm, batch)
                except Exception as e:
                    logger.warning("Batch %d failed (%s), falling back to per-item calls", batch_no, e)
                    results = {}
                else:
                    logger.info("Batch %d: %d/%d items from batch response", batch_no, len(results), len(batch))

                for position, item in enumerate(batch):
                    enrichment = results.get(position)
                    if enrichment is None:
                        try:
                            enrichment = self._enrich_one(llm, item)
                        except Exception as e:
                            logger.error("Failed to process news %s: %s", item.get("id"), e)
                            continue
                    if self._store(session, item, enrichment):
                        enriched += 1
        finally:
            session.close()

        logger.info("Enrichment done: %d/%d items moved to reading", enriched, len(items))
        return enriched

    def process_news(self, item: dict[str, Any]) -> bool:
        """Enrich a single item through the per-item path."""
        llm = self._llm
        try:
            enrichment = self._enrich_one(llm, item)
        except Exception as e:
            logger.error("Failed to process news %s: %s", item.get("id"), e)
            return False
        session = get_session()
        try:
            return self._store(session, item, enrichment)
        finally:
            session.close()

    def process_unprocessed_news(self, limit: int = PROCESS_LIMIT) -> int:
        """Enrich the most recent untranslated, unfiltered items."""
        session = get_session()
        try:
            rows = (
                session.query(News)
                .filter(News.translated.is_(False), News.is_filtered.is_(False))
                .order_by(News.created_at.desc())
                .limit(limit)
                .all()
            )
            items = [news_to_dict(n) for n in rows]
        finally:
            session.close()

        logger.info("Found %d unprocessed news", len(items))
        return self.process_and_move_to_reading(items)
