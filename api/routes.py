"""API routes for news-intel."""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Literal

from apscheduler.triggers.cron import CronTrigger
from fastapi import APIRouter, BackgroundTasks, HTTPException, Query
from jinja2 import TemplateError
from sqlalchemy import func

from api.schemas import (
    AIConfigIn,
    AutoPushIn,
    ChannelIn,
    PreviewIn,
    SourceIn,
    TaskIn,
    TemplateDesignIn,
    TemplateIn,
    TextIn,
)
from config import PROCESS_LIMIT
from db.database import get_session
from db.models import AIConfig, EmailTemplate, News, NewsSource, PushChannel, PushTask
from db.store import add_to_reading, count_unpushed_in_reading, news_to_dict, remove_from_reading
from dispatch.channels import ChannelConfigError
from dispatch.dispatcher import ChannelNotFoundError
from dispatch.templates import BUILTIN_TEMPLATES, render_digest
from pipeline import get_pipeline
from scheduler import get_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_PREVIEW_SAMPLES = [
    {
        "title": "Example: OpenAI announces a new model",
        "trans_title": "示例：OpenAI 发布新模型",
        "source": "Hacker News",
        "category": "tech",
        "url": "https://example.com/1",
        "trans_summary": "Sample summary used for template preview. Real pushes use reading-window items.",
    },
    {
        "title": "Example: Apple reveals new AI features",
        "trans_title": "示例：苹果发布新 AI 功能",
        "source": "TechCrunch",
        "category": "ai",
        "url": "https://example.com/2",
        "trans_summary": "Collect and translate some news to preview with real data.",
    },
]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _mask(secret: str | None) -> str:
    if not secret:
        return ""
    if len(secret) <= 8:
        return "***"
    return f"{secret[:3]}...{secret[-4:]}"


def _reload_push_tasks() -> None:
    scheduler = get_scheduler()
    if scheduler is not None:
        scheduler.load_push_tasks()


@router.get("/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""
    return {"status": "ok", "service": "news-intel"}


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------

@router.get("/news")
def list_news(
    category: str | None = Query(default=None),
    source: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    """Latest news, excluding filtered items."""
    session = get_session()
    try:
        query = session.query(News).filter(News.is_filtered.is_(False))
        if category:
            query = query.filter(News.category == category)
        if source:
            query = query.filter(News.source == source)
        total = query.count()
        rows = query.order_by(News.created_at.desc()).limit(limit).offset(offset).all()
        return {"data": [news_to_dict(n) for n in rows], "total": total}
    finally:
        session.close()


@router.get("/news/{news_id}")
def get_news(news_id: str) -> dict[str, Any]:
    session = get_session()
    try:
        news = session.get(News, news_id)
        if news is None:
            raise HTTPException(status_code=404, detail="News not found")
        return news_to_dict(news)
    finally:
        session.close()


@router.delete("/news/{news_id}")
def delete_news(news_id: str) -> dict[str, bool]:
    session = get_session()
    try:
        news = session.get(News, news_id)
        if news is None:
            raise HTTPException(status_code=404, detail="News not found")
        session.delete(news)
        session.commit()
        return {"success": True}
    finally:
        session.close()


@router.post("/news/collect")
def trigger_collect(background_tasks: BackgroundTasks) -> dict[str, str]:
    """Collect, translate and re-check auto-push in the background."""
    background_tasks.add_task(get_pipeline().collect_and_process)
    return {"message": "Collection and translation started"}


@router.post("/news/process")
def trigger_process(
    background_tasks: BackgroundTasks,
    limit: int = Query(default=PROCESS_LIMIT, ge=1, le=200),
) -> dict[str, str]:
    background_tasks.add_task(get_pipeline().process_unprocessed, limit)
    return {"message": "Processing started"}


# ---------------------------------------------------------------------------
# Reading window
# ---------------------------------------------------------------------------

@router.get("/reading")
def list_reading(
    category: str | None = Query(default=None),
    pushed: Literal["all", "yes", "no"] = Query(default="all"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    """Reading-window items, most recently windowed first."""
    session = get_session()
    try:
        query = session.query(News).filter(News.in_reading.is_(True))
        if category:
            query = query.filter(News.category == category)
        if pushed == "yes":
            query = query.filter(News.pushed.is_(True))
        elif pushed == "no":
            query = query.filter(News.pushed.is_(False))
        total = query.count()
        rows = query.order_by(News.reading_at.desc()).limit(limit).offset(offset).all()
        return {
            "data": [news_to_dict(n) for n in rows],
            "total": total,
            "unpushed_count": count_unpushed_in_reading(session),
        }
    finally:
        session.close()


@router.post("/reading/clear-pushed")
def clear_pushed() -> dict[str, Any]:
    cleared = get_pipeline().dispatcher.clear_pushed()
    return {"success": True, "cleared": cleared, "message": "Cleared pushed news from reading"}


@router.post("/reading/{news_id}/add")
def add_reading(news_id: str) -> dict[str, bool]:
    session = get_session()
    try:
        news = session.get(News, news_id)
        if news is None:
            raise HTTPException(status_code=404, detail="News not found")
        if news.in_reading:
            return {"success": True}
        if not add_to_reading(session, news_id):
            raise HTTPException(status_code=409, detail="Only translated news can enter the reading window")
        return {"success": True}
    finally:
        session.close()


@router.post("/reading/{news_id}/remove")
def remove_reading(news_id: str) -> dict[str, bool]:
    session = get_session()
    try:
        if session.get(News, news_id) is None:
            raise HTTPException(status_code=404, detail="News not found")
        if not remove_from_reading(session, news_id):
            raise HTTPException(status_code=409, detail="Unpushed news cannot leave the reading window")
        return {"success": True}
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def _serialize_source(s: NewsSource) -> dict[str, Any]:
    return {
        "id": s.id,
        "name": s.name,
        "type": s.type,
        "url": s.url,
        "category": s.category,
        "enabled": s.enabled,
        "interval_mins": s.interval_mins,
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
    }


@router.get("/sources")
def list_sources() -> list[dict[str, Any]]:
    session = get_session()
    try:
        rows = session.query(NewsSource).order_by(NewsSource.created_at.desc()).all()
        return [_serialize_source(s) for s in rows]
    finally:
        session.close()


@router.post("/sources")
def create_source(body: SourceIn) -> dict[str, Any]:
    session = get_session()
    try:
        source = NewsSource(**body.model_dump())
        session.add(source)
        session.commit()
        return _serialize_source(source)
    finally:
        session.close()


@router.put("/sources/{source_id}")
def update_source(source_id: str, body: SourceIn) -> dict[str, Any]:
    session = get_session()
    try:
        source = session.get(NewsSource, source_id)
        if source is None:
            raise HTTPException(status_code=404, detail="Source not found")
        for key, value in body.model_dump().items():
            setattr(source, key, value)
        session.commit()
        return _serialize_source(source)
    finally:
        session.close()


@router.delete("/sources/{source_id}")
def delete_source(source_id: str) -> dict[str, bool]:
    session = get_session()
    try:
        deleted = session.query(NewsSource).filter(NewsSource.id == source_id).delete()
        session.commit()
        if not deleted:
            raise HTTPException(status_code=404, detail="Source not found")
        return {"success": True}
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------

def _channel_config_json(config: dict[str, Any] | str) -> str:
    if isinstance(config, str):
        try:
            config = json.loads(config or "{}")
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail=f"Invalid channel config JSON: {e}") from e
    if not isinstance(config, dict):
        raise HTTPException(status_code=400, detail="Channel config must be a JSON object")
    return json.dumps(config, ensure_ascii=False)


def _serialize_channel(ch: PushChannel) -> dict[str, Any]:
    try:
        config = json.loads(ch.config or "{}")
    except json.JSONDecodeError:
        config = {}
    if isinstance(config, dict) and config.get("password"):
        config["password"] = _mask(config["password"])
    return {
        "id": ch.id,
        "name": ch.name,
        "type": ch.type,
        "config": config,
        "enabled": ch.enabled,
        "created_at": _iso(ch.created_at),
        "updated_at": _iso(ch.updated_at),
    }


@router.get("/channels")
def list_channels() -> list[dict[str, Any]]:
    session = get_session()
    try:
        rows = session.query(PushChannel).order_by(PushChannel.created_at.desc()).all()
        return [_serialize_channel(ch) for ch in rows]
    finally:
        session.close()


@router.post("/channels")
def create_channel(body: ChannelIn) -> dict[str, Any]:
    session = get_session()
    try:
        channel = PushChannel(
            name=body.name,
            type=body.type,
            config=_channel_config_json(body.config),
            enabled=body.enabled,
        )
        session.add(channel)
        session.commit()
        return _serialize_channel(channel)
    finally:
        session.close()


@router.put("/channels/{channel_id}")
def update_channel(channel_id: str, body: ChannelIn) -> dict[str, Any]:
    session = get_session()
    try:
        channel = session.get(PushChannel, channel_id)
        if channel is None:
            raise HTTPException(status_code=404, detail="Channel not found")
        channel.name = body.name
        channel.type = body.type
        channel.config = _channel_config_json(body.config)
        channel.enabled = body.enabled
        session.commit()
        return _serialize_channel(channel)
    finally:
        session.close()


@router.delete("/channels/{channel_id}")
def delete_channel(channel_id: str) -> dict[str, bool]:
    session = get_session()
    try:
        deleted = session.query(PushChannel).filter(PushChannel.id == channel_id).delete()
        session.commit()
        if not deleted:
            raise HTTPException(status_code=404, detail="Channel not found")
        return {"success": True}
    finally:
        session.close()


@router.post("/channels/{channel_id}/test")
def test_channel(channel_id: str) -> dict[str, Any]:
    try:
        result = get_pipeline().dispatcher.send_test(channel_id)
    except ChannelNotFoundError:
        raise HTTPException(status_code=404, detail="Channel not found")
    except ChannelConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.error)
    return {"success": True, "message": "Test sent successfully"}


# ---------------------------------------------------------------------------
# Push tasks
# ---------------------------------------------------------------------------

def _serialize_task(t: PushTask) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "cron_expr": t.cron_expr,
        "channel_id": t.channel_id,
        "template_id": t.template_id,
        "categories": t.categories,
        "enabled": t.enabled,
        "last_run_at": _iso(t.last_run_at),
        "created_at": _iso(t.created_at),
        "updated_at": _iso(t.updated_at),
    }


def _validate_cron(expr: str) -> None:
    try:
        CronTrigger.from_crontab(expr)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid cron expression: {e}") from e


@router.get("/tasks")
def list_tasks() -> list[dict[str, Any]]:
    session = get_session()
    try:
        rows = session.query(PushTask).order_by(PushTask.created_at.desc()).all()
        return [_serialize_task(t) for t in rows]
    finally:
        session.close()


@router.post("/tasks")
def create_task(body: TaskIn) -> dict[str, Any]:
    _validate_cron(body.cron_expr)
    session = get_session()
    try:
        task = PushTask(**body.model_dump())
        session.add(task)
        session.commit()
        result = _serialize_task(task)
    finally:
        session.close()
    _reload_push_tasks()
    return result


@router.put("/tasks/{task_id}")
def update_task(task_id: str, body: TaskIn) -> dict[str, Any]:
    _validate_cron(body.cron_expr)
    session = get_session()
    try:
        task = session.get(PushTask, task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        for key, value in body.model_dump().items():
            setattr(task, key, value)
        session.commit()
        result = _serialize_task(task)
    finally:
        session.close()
    _reload_push_tasks()
    return result


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str) -> dict[str, bool]:
    session = get_session()
    try:
        deleted = session.query(PushTask).filter(PushTask.id == task_id).delete()
        session.commit()
    finally:
        session.close()
    if not deleted:
        raise HTTPException(status_code=404, detail="Task not found")
    _reload_push_tasks()
    return {"success": True}


@router.post("/tasks/{task_id}/run")
def run_task(task_id: str, background_tasks: BackgroundTasks) -> dict[str, str]:
    """Validate the task and its channel, then push in the background."""
    session = get_session()
    try:
        task = session.get(PushTask, task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        if not task.channel_id or session.get(PushChannel, task.channel_id) is None:
            raise HTTPException(status_code=404, detail="channel not found")
    finally:
        session.close()

    background_tasks.add_task(get_pipeline().run_push_task, task_id)
    return {"message": "Task started"}


# ---------------------------------------------------------------------------
# Auto push
# ---------------------------------------------------------------------------

@router.get("/auto-push/config")
def get_auto_push_config() -> dict[str, Any]:
    dispatcher = get_pipeline().dispatcher
    policy = dispatcher.get_auto_push_config()
    return {
        "enabled": policy.enabled,
        "threshold": policy.threshold,
        "channel_id": policy.channel_id,
        "template_id": policy.template_id,
        "pending_count": dispatcher.pending_count(),
    }


@router.post("/auto-push/config")
def save_auto_push_config(body: AutoPushIn, background_tasks: BackgroundTasks) -> dict[str, Any]:
    pipeline = get_pipeline()
    policy = pipeline.dispatcher.save_auto_push_config(
        body.enabled, body.threshold, body.channel_id, body.template_id
    )
    # The backlog may already be over the new threshold.
    background_tasks.add_task(pipeline.auto_push_check)
    return {"success": True, "threshold": policy.threshold}


@router.get("/auto-push/status")
def get_auto_push_status() -> dict[str, Any]:
    dispatcher = get_pipeline().dispatcher
    policy = dispatcher.get_auto_push_config()
    pending = dispatcher.pending_count()
    return {
        "enabled": policy.enabled,
        "threshold": policy.threshold,
        "pending_count": pending,
        "ready": pending >= policy.threshold,
    }


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def _serialize_template(t: EmailTemplate) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "subject": t.subject,
        "content": t.content,
        "is_default": t.is_default,
        "created_at": _iso(t.created_at),
        "updated_at": _iso(t.updated_at),
    }


@router.get("/templates")
def list_templates() -> list[dict[str, Any]]:
    session = get_session()
    try:
        rows = session.query(EmailTemplate).order_by(EmailTemplate.created_at.desc()).all()
        return [_serialize_template(t) for t in rows]
    finally:
        session.close()


@router.get("/templates/builtin")
def list_builtin_templates() -> dict[str, dict[str, str]]:
    return BUILTIN_TEMPLATES


@router.post("/templates")
def create_template(body: TemplateIn) -> dict[str, Any]:
    session = get_session()
    try:
        template = EmailTemplate(**body.model_dump())
        session.add(template)
        session.commit()
        return _serialize_template(template)
    finally:
        session.close()


@router.put("/templates/{template_id}")
def update_template(template_id: str, body: TemplateIn) -> dict[str, Any]:
    session = get_session()
    try:
        template = session.get(EmailTemplate, template_id)
        if template is None:
            raise HTTPException(status_code=404, detail="Template not found")
        for key, value in body.model_dump().items():
            setattr(template, key, value)
        session.commit()
        return _serialize_template(template)
    finally:
        session.close()


@router.delete("/templates/{template_id}")
def delete_template(template_id: str) -> dict[str, bool]:
    session = get_session()
    try:
        deleted = session.query(EmailTemplate).filter(EmailTemplate.id == template_id).delete()
        session.commit()
        if not deleted:
            raise HTTPException(status_code=404, detail="Template not found")
        return {"success": True}
    finally:
        session.close()


@router.post("/templates/preview")
def preview_template(body: PreviewIn) -> dict[str, Any]:
    """Render with the latest reading-window items, or samples when it is empty."""
    session = get_session()
    try:
        rows = (
            session.query(News)
            .filter(News.in_reading.is_(True), News.translated.is_(True))
            .order_by(News.reading_at.desc())
            .limit(5)
            .all()
        )
        news = [news_to_dict(n) for n in rows]
    finally:
        session.close()
    if not news:
        news = _PREVIEW_SAMPLES

    try:
        digest = render_digest(news, body.content, body.subject or None)
    except TemplateError as e:
        raise HTTPException(status_code=400, detail=f"Template error: {e}") from e
    return {"html": digest.html, "subject": digest.subject, "news_count": len(news)}


@router.post("/templates/ai-generate")
def generate_template(body: TemplateDesignIn) -> dict[str, str]:
    if not body.description.strip():
        raise HTTPException(status_code=400, detail="Describe the template you want")
    try:
        template = get_pipeline().engine.generate_email_template(body.description, body.current_template)
    except Exception as e:
        logger.exception("Template generation failed")
        raise HTTPException(status_code=502, detail=f"AI generation failed: {e}") from e
    return {"template": template}


# ---------------------------------------------------------------------------
# AI config
# ---------------------------------------------------------------------------

@router.get("/ai/config")
def get_ai_config() -> dict[str, Any]:
    session = get_session()
    try:
        cfg = session.query(AIConfig).first()
        if cfg is None:
            settings = get_pipeline().engine.llm.settings
            return {
                "provider": settings.provider,
                "api_key": _mask(settings.api_key),
                "base_url": settings.base_url,
                "model": settings.model,
                "enable_trans": True,
                "enable_summary": True,
                "enable_filter": False,
                "target_lang": settings.target_lang,
            }
        return {
            "id": cfg.id,
            "provider": cfg.provider,
            "api_key": _mask(cfg.api_key),
            "base_url": cfg.base_url,
            "model": cfg.model,
            "enable_trans": cfg.enable_trans,
            "enable_summary": cfg.enable_summary,
            "enable_filter": cfg.enable_filter,
            "target_lang": cfg.target_lang,
        }
    finally:
        session.close()


@router.post("/ai/config")
def save_ai_config(body: AIConfigIn) -> dict[str, bool]:
    """Replace the saved AI config and swap the enrichment client."""
    session = get_session()
    try:
        previous = session.query(AIConfig).first()
        api_key = body.api_key or (previous.api_key if previous else "")
        session.query(AIConfig).delete()
        session.add(AIConfig(**{**body.model_dump(), "api_key": api_key}))
        session.commit()
    finally:
        session.close()

    get_pipeline().engine.reload_config()
    return {"success": True}


@router.post("/ai/translate")
def translate_text(body: TextIn) -> dict[str, str]:
    try:
        result = get_pipeline().engine.translate(body.text, body.target_lang)
    except Exception as e:
        logger.error("Translate failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    return {"result": result}


@router.post("/ai/summarize")
def summarize_text(body: TextIn) -> dict[str, str]:
    try:
        result = get_pipeline().engine.summarize(body.text, body.target_lang)
    except Exception as e:
        logger.error("Summarize failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    return {"result": result}


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@router.get("/stats")
def get_stats() -> dict[str, Any]:
    session = get_session()
    try:
        cutoff = datetime.utcnow() - timedelta(days=1)
        by_category = dict(
            session.query(News.category, func.count(News.id)).group_by(News.category).all()
        )
        return {
            "total_news": session.query(func.count(News.id)).scalar() or 0,
            "today_news": session.query(func.count(News.id)).filter(News.created_at > cutoff).scalar() or 0,
            "reading_count": session.query(func.count(News.id)).filter(News.in_reading.is_(True)).scalar() or 0,
            "pending_push": count_unpushed_in_reading(session),
            "sources_count": session.query(func.count(NewsSource.id)).filter(NewsSource.enabled.is_(True)).scalar() or 0,
            "channels_count": session.query(func.count(PushChannel.id)).filter(PushChannel.enabled.is_(True)).scalar() or 0,
            "by_category": {(cat or ""): count for cat, count in by_category.items()},
        }
    finally:
        session.close()
