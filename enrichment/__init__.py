from enrichment.engine import EnrichmentEngine
from enrichment.llm import LLMClient, LLMNotConfiguredError, LLMSettings

__all__ = ["EnrichmentEngine", "LLMClient", "LLMNotConfiguredError", "LLMSettings"]
