"""
Configuration management for storefront-search.

Loads settings from YAML config file, then applies environment overrides.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of storefront_search package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


@dataclass
class SearchConfig:
    """Configuration for the product search engine and its collaborators."""

    # Storage
    database_url: str = "sqlite:///./storefront.db"
    database_echo: bool = False

    # Pagination and sorting defaults
    default_limit: int = 24
    max_limit: int = 100
    default_sort_by: str = "createdAt"
    default_sort_order: str = "desc"
    value_delimiter: str = ","       # Separator for multi-valued query params

    # Facets
    include_zero_facets: bool = False
    parallel_facets: bool = True     # Fan out facet queries over worker threads

    # Result cache (redis)
    cache_enabled: bool = True
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    cache_ttl_search: int = 300      # 5 minutes

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "SearchConfig":
        """Load configuration from YAML file, then apply environment overrides."""
        path = config_path or DEFAULT_CONFIG_PATH
        data: Dict[str, Any] = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        database_config = data.get('database', {})
        search_config = data.get('search', {})
        cache_config = data.get('cache', {})
        logging_config = data.get('logging', {})

        config = cls(
            database_url=database_config.get('url', cls.database_url),
            database_echo=database_config.get('echo', False),
            default_limit=search_config.get('default_limit', 24),
            max_limit=search_config.get('max_limit', 100),
            default_sort_by=search_config.get('default_sort_by', 'createdAt'),
            default_sort_order=search_config.get('default_sort_order', 'desc'),
            value_delimiter=search_config.get('value_delimiter', ','),
            include_zero_facets=search_config.get('include_zero_facets', False),
            parallel_facets=search_config.get('parallel_facets', True),
            cache_enabled=cache_config.get('enabled', True),
            redis_url=cache_config.get('redis_url'),
            redis_host=cache_config.get('redis_host', 'localhost'),
            redis_port=cache_config.get('redis_port', 6379),
            redis_db=cache_config.get('redis_db', 0),
            cache_ttl_search=cache_config.get('ttl_search', 300),
            log_level=logging_config.get('level', 'INFO'),
        )
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override fields from environment variables where set."""
        self.database_url = os.getenv("DATABASE_URL") or self.database_url
        self.redis_url = os.getenv("REDIS_URL") or self.redis_url
        self.redis_host = os.getenv("REDIS_HOST", self.redis_host)
        self.redis_port = int(os.getenv("REDIS_PORT", str(self.redis_port)))
        self.cache_ttl_search = int(os.getenv("CACHE_TTL_SEARCH", str(self.cache_ttl_search)))
        self.default_limit = int(os.getenv("SEARCH_DEFAULT_LIMIT", str(self.default_limit)))
        self.max_limit = int(os.getenv("SEARCH_MAX_LIMIT", str(self.max_limit)))
        self.log_level = os.getenv("LOG_LEVEL", self.log_level).upper()
        if os.getenv("SEARCH_CACHE_DISABLED", "").lower() in ("1", "true", "yes"):
            self.cache_enabled = False


# Global config instance
_config: Optional[SearchConfig] = None


def get_config() -> SearchConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = SearchConfig.from_yaml()
    return _config


def set_config(config: SearchConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
