from .web_search import WebSearch, fallback_result

__all__ = ["WebSearch", "fallback_result"]
