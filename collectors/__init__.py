from collectors.base import BaseCollector
from collectors.feed import FeedCollector
from collectors.runner import COLLECTORS, collect_all, init_default_sources

__all__ = [
    "BaseCollector",
    "FeedCollector",
    "COLLECTORS",
    "collect_all",
    "init_default_sources",
]
