"""One pass of collect -> enrich -> auto-push, plus the manual entry points.

Every entry point runs under a single re-entrant lock, so a scheduled tick and
an API-triggered run never enrich or dispatch the same items at the same time.
Errors from a stage are logged here and never propagate to the scheduler.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

from collectors.runner import collect_all
from config import PROCESS_LIMIT
from dispatch.dispatcher import Dispatcher
from enrichment.engine import EnrichmentEngine

logger = logging.getLogger(__name__)


class Pipeline:
    def __init__(
        self,
        engine: EnrichmentEngine | None = None,
        dispatcher: Dispatcher | None = None,
        collect: Callable[[], list[dict[str, Any]]] = collect_all,
    ) -> None:
        self.engine = engine or EnrichmentEngine()
        self.dispatcher = dispatcher or Dispatcher()
        self._collect = collect
        self.run_lock = threading.RLock()

    def collect_and_process(self) -> dict[str, int]:
        """Collector -> Enrichment (when something is new) -> auto-push check."""
        stats = {"collected": 0, "enriched": 0, "pushed": 0}
        with self.run_lock:
            logger.info("Collecting news...")
            try:
                new_items = self._collect()
            except Exception:
                logger.exception("Collect error")
                new_items = []
            stats["collected"] = len(new_items)

            if new_items:
                logger.info("Translating %d new news...", len(new_items))
                try:
                    stats["enriched"] = self.engine.process_and_move_to_reading(new_items)
                except Exception:
                    logger.exception("AI process error")
            else:
                logger.info("No new news to translate")

            stats["pushed"] = self.auto_push_check()
        return stats

    def process_unprocessed(self, limit: int = PROCESS_LIMIT) -> int:
        """Enrich backlog items, then re-check the auto-push threshold."""
        with self.run_lock:
            try:
                enriched = self.engine.process_unprocessed_news(limit)
            except Exception:
                logger.exception("Process error")
                return 0
            self.auto_push_check()
            return enriched

    def auto_push_check(self) -> int:
        with self.run_lock:
            try:
                return self.dispatcher.check_and_auto_push()
            except Exception:
                logger.exception("Auto push check error")
                return 0

    def run_push_task(self, task_id: str) -> int:
        with self.run_lock:
            try:
                return self.dispatcher.run_task(task_id)
            except Exception:
                logger.exception("Push task %s error", task_id)
                return 0


_pipeline: Pipeline | None = None


def get_pipeline() -> Pipeline:
    """Process-wide pipeline, created on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = Pipeline()
    return _pipeline
