"""news-intel configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

# --- Paths ---
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
DB_PATH = Path(os.getenv("DB_PATH", str(DATA_DIR / "news.db")))

# --- API ---
API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
API_PORT: int = int(os.getenv("PORT", "5555"))

# --- Collector ---
FEED_FETCH_TIMEOUT: int = 30  # seconds, per source
FEED_MAX_AGE_HOURS: int = 24
COLLECT_INTERVAL_MINUTES: int = 30
FEED_USER_AGENT = "news-intel/0.1 (+feedparser)"

DEFAULT_SOURCES: list[dict[str, object]] = [
    {"name": "Hacker News", "url": "https://hnrss.org/frontpage", "category": "tech", "interval_mins": 30},
    {"name": "TechCrunch", "url": "https://techcrunch.com/feed/", "category": "tech", "interval_mins": 60},
    {"name": "The Verge", "url": "https://www.theverge.com/rss/index.xml", "category": "tech", "interval_mins": 60},
    {"name": "Ars Technica", "url": "https://feeds.arstechnica.com/arstechnica/index", "category": "tech", "interval_mins": 60},
    {"name": "MIT Tech Review", "url": "https://www.technologyreview.com/feed/", "category": "ai", "interval_mins": 60},
    {"name": "AI News", "url": "https://www.artificialintelligence-news.com/feed/", "category": "ai", "interval_mins": 60},
    {"name": "GitHub Trending", "url": "https://ossinsight.io/blog/rss.xml", "category": "github", "interval_mins": 120},
    {"name": "Al Jazeera World", "url": "https://www.aljazeera.com/xml/rss/all.xml", "category": "international", "interval_mins": 60},
    {"name": "BBC News", "url": "https://feeds.bbci.co.uk/news/world/rss.xml", "category": "international", "interval_mins": 60},
]

# --- LLM enrichment ---
# Env values are the fallback; a saved row in ai_configs wins.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
DEFAULT_TARGET_LANG = "zh-CN"
ENRICH_BATCH_SIZE: int = 5
PROCESS_LIMIT: int = 10

# --- Dispatch ---
PUSH_TASK_LIMIT: int = 20
AUTO_PUSH_DEFAULT_THRESHOLD: int = 6
WEBHOOK_TIMEOUT: int = 10
WEBHOOK_MAX_ITEMS: int = 10
