"""Runtime settings for the Club Intelligence Layer."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):
    """Tunable parameters for extraction, caching and query execution."""
    neo4j_uri: Optional[str] = None
    neo4j_user: Optional[str] = None
    neo4j_password: Optional[str] = None
    neo4j_database: str = "neo4j"
    graph_label: str = "dorkiniansWebsite"
    club_name: str = "Dorkinians"

    fuzzy_threshold: float = 0.7
    cache_capacity: int = 50
    cache_ttl_seconds: float = 600.0  # 10 minutes
    entity_index_ttl_seconds: float = 300.0  # 5 minutes

    query_timeout_seconds: float = 10.0
    slow_query_ms: float = 1000.0
    leaderboard_limit: int = 10

    redis_url: Optional[str] = None
    result_cache_ttl: int = 3600
    pseudonyms_path: Optional[Path] = None


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def load_settings(**overrides) -> Settings:
    """Build settings from the environment (and a .env file if present)."""
    load_dotenv()

    pseudonyms_path = os.getenv("CLUB_PSEUDONYMS_PATH")
    values = {
        "neo4j_uri": os.getenv("NEO4J_URI"),
        "neo4j_user": os.getenv("NEO4J_USER") or os.getenv("NEO4J_USERNAME"),
        "neo4j_password": os.getenv("NEO4J_PASSWORD"),
        "neo4j_database": os.getenv("NEO4J_DATABASE", "neo4j"),
        "graph_label": os.getenv("CLUB_GRAPH_LABEL", "dorkiniansWebsite"),
        "club_name": os.getenv("CLUB_NAME", "Dorkinians"),
        "fuzzy_threshold": _float_env("CLUB_FUZZY_THRESHOLD", 0.7),
        "cache_capacity": _int_env("CLUB_CACHE_CAPACITY", 50),
        "cache_ttl_seconds": _float_env("CLUB_CACHE_TTL_SECONDS", 600.0),
        "entity_index_ttl_seconds": _float_env("CLUB_ENTITY_INDEX_TTL_SECONDS", 300.0),
        "query_timeout_seconds": _float_env("CLUB_QUERY_TIMEOUT_SECONDS", 10.0),
        "slow_query_ms": _float_env("CLUB_SLOW_QUERY_MS", 1000.0),
        "leaderboard_limit": _int_env("CLUB_LEADERBOARD_LIMIT", 10),
        "redis_url": os.getenv("REDIS_URL"),
        "pseudonyms_path": Path(pseudonyms_path) if pseudonyms_path else None,
    }
    values.update(overrides)
    return Settings(**values)
