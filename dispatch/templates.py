"""Digest rendering with Jinja2.

Templates receive ``news`` (list of item dicts), ``date``, ``count`` and
``generated``.
"""

from datetime import datetime
from typing import Any

from jinja2 import Environment, select_autoescape

from config import WEBHOOK_MAX_ITEMS
from dispatch.channels import Digest

_html_env = Environment(autoescape=select_autoescape(default_for_string=True, default=True))
_text_env = Environment(autoescape=False)

DEFAULT_SUBJECT = "News Intel Daily - {{ date }}"

DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: #f5f5f5; margin: 0; padding: 20px; }
        .container { max-width: 680px; margin: 0 auto; background: #fff; border-radius: 12px; overflow: hidden; }
        .header { background: #4f46e5; color: white; padding: 28px; text-align: center; }
        .header h1 { margin: 0; font-size: 24px; }
        .header p { margin: 8px 0 0; opacity: 0.9; }
        .content { padding: 20px; }
        .news-item { border-bottom: 1px solid #eee; padding: 18px 0; }
        .news-item:last-child { border-bottom: none; }
        .news-title { font-size: 18px; font-weight: 600; margin: 0 0 8px; }
        .news-title a { color: #4f46e5; text-decoration: none; }
        .news-meta { font-size: 12px; color: #999; margin-bottom: 8px; }
        .category-tag { display: inline-block; background: #f0f0f0; padding: 2px 8px; border-radius: 4px; font-size: 11px; color: #666; margin-right: 12px; }
        .news-summary { color: #555; line-height: 1.7; margin: 0; white-space: pre-line; }
        .footer { background: #fafafa; padding: 16px; text-align: center; color: #999; font-size: 12px; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>News Intel Daily</h1>
            <p>{{ date }} · {{ count }} stories</p>
        </div>
        <div class="content">
            {% for item in news %}
            <div class="news-item">
                <h2 class="news-title">
                    <a href="{{ item.url }}" target="_blank">{{ item.trans_title or item.title }}</a>
                </h2>
                <div class="news-meta">
                    <span class="category-tag">{{ item.category }}</span>
                    <span>Source: {{ item.source }}</span>
                </div>
                <p class="news-summary">{{ item.trans_summary or item.summary }}</p>
            </div>
            {% endfor %}
        </div>
        <div class="footer">
            <p>Generated by News Intel at {{ generated }}</p>
        </div>
    </div>
</body>
</html>"""

# Chinese + Uyghur layout for the "zh-ug" target-language mode, where
# trans_title / trans_summary each hold 【中文】 and 【ئۇيغۇرچە】 sections.
BILINGUAL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: #f5f5f5; margin: 0; padding: 20px; }
        .container { max-width: 720px; margin: 0 auto; background: #fff; border-radius: 12px; overflow: hidden; }
        .header { background: #4f46e5; color: white; padding: 28px; text-align: center; }
        .header h1 { margin: 0; font-size: 24px; }
        .header .ug-title { direction: rtl; font-size: 20px; margin-top: 8px; }
        .header .subtitle { margin: 8px 0 0; opacity: 0.9; font-size: 14px; }
        .content { padding: 20px; }
        .news-item { border-bottom: 1px solid #eee; padding: 22px 0; }
        .news-item:last-child { border-bottom: none; }
        .news-title { font-size: 18px; font-weight: 600; margin: 0 0 10px; }
        .news-title a { color: #4f46e5; text-decoration: none; }
        .news-meta { font-size: 12px; color: #999; margin-bottom: 10px; }
        .category-tag { display: inline-block; background: #4f46e5; color: white; padding: 2px 10px; border-radius: 4px; font-size: 11px; margin-right: 12px; }
        .bilingual { background: #fafafa; border-radius: 8px; padding: 14px; color: #555; line-height: 1.8; white-space: pre-line; }
        .footer { background: #fafafa; padding: 16px; text-align: center; color: #999; font-size: 12px; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>新闻情报日报</h1>
            <div class="ug-title">خەۋەر ئۇچۇرلىرى كۈندىلىك</div>
            <p class="subtitle">{{ date }} · 共 {{ count }} 条新闻 · جەمئى {{ count }} خەۋەر</p>
        </div>
        <div class="content">
            {% for item in news %}
            <div class="news-item">
                <h2 class="news-title"><a href="{{ item.url }}" target="_blank">{{ item.title }}</a></h2>
                <div class="news-meta">
                    <span class="category-tag">{{ item.category }}</span>
                    <span>来源/مەنبە: {{ item.source }}</span>
                </div>
                <div class="bilingual">{{ item.trans_title }}

{{ item.trans_summary or item.summary }}</div>
            </div>
            {% endfor %}
        </div>
        <div class="footer">
            <p>News Intel · {{ generated }}</p>
        </div>
    </div>
</body>
</html>"""

BUILTIN_TEMPLATES = {
    "default": {"subject": DEFAULT_SUBJECT, "content": DEFAULT_TEMPLATE},
    "bilingual": {"subject": DEFAULT_SUBJECT, "content": BILINGUAL_TEMPLATE},
}


def _context(news: list[dict[str, Any]], now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now()
    return {
        "news": news,
        "date": now.strftime("%Y-%m-%d"),
        "count": len(news),
        "generated": now.strftime("%Y-%m-%d %H:%M:%S"),
    }


def render_template(content: str, news: list[dict[str, Any]], now: datetime | None = None) -> str:
    """Render a Jinja2 template string. Raises ``jinja2.TemplateError`` on bad syntax."""
    return _html_env.from_string(content).render(**_context(news, now))


def render_markdown(news: list[dict[str, Any]], max_items: int = WEBHOOK_MAX_ITEMS) -> str:
    """Compact Markdown digest for push-notification webhooks."""
    lines: list[str] = []
    for i, item in enumerate(news[:max_items], start=1):
        title = item.get("trans_title") or item.get("title") or ""
        summary = item.get("trans_summary") or item.get("summary") or ""
        if len(summary) > 100:
            summary = summary[:100] + "..."
        lines.append(f"**{i}. {title}**")
        if summary:
            lines.append(summary)
        lines.append(f"[Read more]({item.get('url', '')})")
        lines.append("")
    if len(news) > max_items:
        lines.append(f"...and {len(news) - max_items} more")
    return "\n".join(lines).strip()


def render_digest(
    news: list[dict[str, Any]],
    template_content: str | None = None,
    subject: str | None = None,
) -> Digest:
    """Render all representations of one dispatch.

    A missing or blank template falls back to the built-in default; a
    template that fails to render raises ``jinja2.TemplateError``.
    """
    now = datetime.now()
    content = template_content or DEFAULT_TEMPLATE
    subject_template = subject or DEFAULT_SUBJECT
    return Digest(
        subject=_text_env.from_string(subject_template).render(**_context(news, now)).strip(),
        html=render_template(content, news, now),
        markdown=render_markdown(news),
        count=len(news),
    )

