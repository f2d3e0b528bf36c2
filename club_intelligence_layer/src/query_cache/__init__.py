from .query_cache import QueryCache, QueryCacheError, create_query_cache  # noqa: F401

__all__ = ["QueryCache", "QueryCacheError", "create_query_cache"]
