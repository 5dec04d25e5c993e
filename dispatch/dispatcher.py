"""Reading-window dispatch: manual push tasks and threshold-driven auto-push.

Selected items are marked pushed only after the channel confirms delivery,
and the whole selection is marked in one statement.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from config import AUTO_PUSH_DEFAULT_THRESHOLD, PUSH_TASK_LIMIT
from db.database import get_session
from db.models import EmailTemplate, PushChannel, PushTask
from db.store import (
    clear_pushed_from_reading,
    count_unpushed_in_reading,
    get_setting,
    mark_pushed,
    news_to_dict,
    select_unpushed_in_reading,
    set_setting,
)
from dispatch.channels import Channel, DeliveryResult, Digest, resolve_channel
from dispatch.templates import render_digest

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """A dispatch could not be completed."""


class ChannelNotFoundError(DispatchError):
    pass


class TaskNotFoundError(DispatchError):
    pass


class DeliveryError(DispatchError):
    pass


@dataclass(frozen=True)
class AutoPushPolicy:
    enabled: bool
    threshold: int
    channel_id: str
    template_id: str


def _parse_threshold(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return AUTO_PUSH_DEFAULT_THRESHOLD
    return value if value > 0 else AUTO_PUSH_DEFAULT_THRESHOLD


class Dispatcher:
    """Render reading-window items and deliver them to a push channel."""

    # --- Policy ---

    def get_auto_push_config(self) -> AutoPushPolicy:
        session = get_session()
        try:
            return AutoPushPolicy(
                enabled=get_setting(session, "auto_push_enabled") == "1",
                threshold=_parse_threshold(get_setting(session, "auto_push_threshold")),
                channel_id=get_setting(session, "auto_push_channel_id"),
                template_id=get_setting(session, "auto_push_template_id"),
            )
        finally:
            session.close()

    def save_auto_push_config(self, enabled: bool, threshold: int, channel_id: str, template_id: str) -> AutoPushPolicy:
        if threshold < 1:
            threshold = AUTO_PUSH_DEFAULT_THRESHOLD
        session = get_session()
        try:
            set_setting(session, "auto_push_enabled", "1" if enabled else "0")
            set_setting(session, "auto_push_threshold", str(threshold))
            set_setting(session, "auto_push_channel_id", channel_id or "")
            set_setting(session, "auto_push_template_id", template_id or "")
            session.commit()
        finally:
            session.close()
        return AutoPushPolicy(enabled, threshold, channel_id or "", template_id or "")

    def pending_count(self) -> int:
        session = get_session()
        try:
            return count_unpushed_in_reading(session)
        finally:
            session.close()

    # --- Shared steps ---

    @staticmethod
    def _load_channel(session: Session, channel_id: str | None) -> Channel:
        row = session.get(PushChannel, channel_id) if channel_id else None
        if row is None:
            raise ChannelNotFoundError(f"channel not found: {channel_id}")
        return resolve_channel(row)

    @staticmethod
    def _load_template(session: Session, template_id: str | None) -> tuple[str | None, str | None]:
        """(content, subject) of the stored template, or (None, None) for the default."""
        row = session.get(EmailTemplate, template_id) if template_id else None
        if row is None or not row.content:
            if template_id:
                logger.warning("Template %s not found, using default template", template_id)
            return None, None
        return row.content, row.subject or None

    def _dispatch(self, session: Session, channel: Channel, template_id: str | None, news: list[dict[str, Any]]) -> int:
        """Render, deliver, then mark pushed. Raises ``DeliveryError`` leaving state untouched."""
        content, subject = self._load_template(session, template_id)
        digest: Digest = render_digest(news, content, subject)
        result: DeliveryResult = channel.deliver(digest)
        if not result.ok:
            raise DeliveryError(f"delivery via {channel.name} failed: {result.error}")

        marked = mark_pushed(session, [n["id"] for n in news])
        logger.info("Marked %d news as pushed via %s", marked, channel.name)
        return marked

    # --- Operations ---

    def execute_push_task(self, task: PushTask) -> int:
        """Push up to ``PUSH_TASK_LIMIT`` unpushed window items, newest first.

        Returns the number of items pushed; an empty window is a no-op.
        """
        session = get_session()
        try:
            channel = self._load_channel(session, task.channel_id)
            rows = select_unpushed_in_reading(session, PUSH_TASK_LIMIT, categories=task.category_list)
            news = [news_to_dict(n) for n in rows]
            if not news:
                logger.info("No unpushed news in reading window for task %s", task.name)
                return 0

            logger.info("Pushing %d news from reading window (task %s)...", len(news), task.name)
            return self._dispatch(session, channel, task.template_id, news)
        finally:
            session.close()

    def run_task(self, task_id: str) -> int:
        """Load a task by id, execute it and record ``last_run_at`` once it succeeds."""
        session = get_session()
        try:
            task = session.get(PushTask, task_id)
            if task is None:
                raise TaskNotFoundError(f"task not found: {task_id}")
            pushed = self.execute_push_task(task)
            task.last_run_at = datetime.utcnow()
            session.commit()
            return pushed
        finally:
            session.close()

    def check_and_auto_push(self) -> int:
        """Dispatch the oldest ``threshold`` items once the backlog reaches the threshold.

        Evaluated from stored state on every call. Returns the number of items
        pushed (0 when disabled, unconfigured or still waiting).
        """
        policy = self.get_auto_push_config()
        if not policy.enabled or not policy.channel_id:
            return 0

        session = get_session()
        try:
            count = count_unpushed_in_reading(session)
            if count < policy.threshold:
                logger.info("Auto push: waiting for more news (%d/%d)", count, policy.threshold)
                return 0

            logger.info("Auto push: threshold reached (%d/%d), triggering push...", count, policy.threshold)
            try:
                channel = self._load_channel(session, policy.channel_id)
            except ChannelNotFoundError:
                logger.warning("Auto push channel %s not found, skipping", policy.channel_id)
                return 0

            rows = select_unpushed_in_reading(session, policy.threshold, oldest_first=True)
            news = [news_to_dict(n) for n in rows]
            if not news:
                return 0

            pushed = self._dispatch(session, channel, policy.template_id, news)
            logger.info("Auto push completed: %d news pushed", pushed)
            return pushed
        finally:
            session.close()

    def clear_pushed(self) -> int:
        session = get_session()
        try:
            cleared = clear_pushed_from_reading(session)
        finally:
            session.close()
        logger.info("Cleared %d pushed news from reading window", cleared)
        return cleared

    def send_test(self, channel_id: str) -> DeliveryResult:
        """Send a one-item test digest through a channel without touching any news."""
        session = get_session()
        try:
            channel = self._load_channel(session, channel_id)
        finally:
            session.close()
        sample = [{
            "title": "Test message from News Intel",
            "summary": "Your channel configuration works.",
            "url": "https://example.com",
            "source": "News Intel",
            "category": "test",
        }]
        return channel.deliver(render_digest(sample, subject="Test - News Intel"))
