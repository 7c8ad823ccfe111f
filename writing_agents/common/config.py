"""
Configuration Management for Writing Agents

Loads configuration from ~/.writing_agents/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("writing_agents.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".writing_agents"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


@dataclass
class SupabaseConfig:
    """Supabase / pgvector document store configuration"""
    url: str = ""
    key: str = ""
    table: str = "documents"
    match_function: str = "match_documents"
    # ivfflat probes: more probes → better recall, slower queries
    ivfflat_probes: int = 10


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    model: str = DEFAULT_EMBEDDING_MODEL
    dimension: int = 384
    batch_size: int = 10
    batch_delay: float = 0.1  # seconds between chunks


@dataclass
class LLMConfig:
    """Anthropic model configuration"""
    anthropic_api_key: str = ""
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    max_tokens: int = 4000


@dataclass
class SearchConfig:
    """Similarity search defaults"""
    threshold: float = 0.78
    limit: int = 5
    topic_limit: int = 10


@dataclass
class ServerConfig:
    """HTTP / WebSocket shell configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    frontend_url: str = "http://localhost:3000"


@dataclass
class WritingConfig:
    """Main configuration"""
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_supabase_config(data: dict) -> SupabaseConfig:
    """Parse supabase section from config dict"""
    supabase_data = data.get("supabase", {})
    return SupabaseConfig(
        url=supabase_data.get("url", ""),
        key=supabase_data.get("key", ""),
        table=supabase_data.get("table", "documents"),
        match_function=supabase_data.get("match_function", "match_documents"),
        ivfflat_probes=supabase_data.get("ivfflat_probes", 10),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        model=embedding_data.get("model", DEFAULT_EMBEDDING_MODEL),
        dimension=embedding_data.get("dimension", 384),
        batch_size=embedding_data.get("batch_size", 10),
        batch_delay=embedding_data.get("batch_delay", 0.1),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", DEFAULT_ANTHROPIC_MODEL),
        max_tokens=llm_data.get("max_tokens", 4000),
    )


def _parse_search_config(data: dict) -> SearchConfig:
    """Parse search section from config dict"""
    search_data = data.get("search", {})
    return SearchConfig(
        threshold=search_data.get("threshold", 0.78),
        limit=search_data.get("limit", 5),
        topic_limit=search_data.get("topic_limit", 10),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 8000),
        frontend_url=server_data.get("frontend_url", "http://localhost:3000"),
    )


def load_config() -> WritingConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.writing_agents/config.json)
    3. Default values
    """
    config = WritingConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.supabase = _parse_supabase_config(data)
            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.search = _parse_search_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Secrets: track env-sourced keys so save_config never persists them
    _env_secret_map = {
        "SUPABASE_URL": (config.supabase, "url"),
        "SUPABASE_ANON_KEY": (config.supabase, "key"),
        "SUPABASE_KEY": (config.supabase, "key"),
        "ANTHROPIC_API_KEY": (config.llm, "anthropic_api_key"),
    }
    for env_var, (section, attr) in _env_secret_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(section, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("SUPABASE_TABLE"):
        config.supabase.table = os.getenv("SUPABASE_TABLE")
    if os.getenv("IVFFLAT_PROBES"):
        config.supabase.ivfflat_probes = int(os.getenv("IVFFLAT_PROBES"))

    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("EMBEDDING_BATCH_SIZE"):
        config.embedding.batch_size = int(os.getenv("EMBEDDING_BATCH_SIZE"))

    if os.getenv("ANTHROPIC_MODEL"):
        config.llm.anthropic_model = os.getenv("ANTHROPIC_MODEL")

    if os.getenv("MATCH_THRESHOLD"):
        config.search.threshold = float(os.getenv("MATCH_THRESHOLD"))
    if os.getenv("MATCH_LIMIT"):
        config.search.limit = int(os.getenv("MATCH_LIMIT"))

    if os.getenv("PORT"):
        config.server.port = int(os.getenv("PORT"))
    if os.getenv("FRONTEND_URL"):
        config.server.frontend_url = os.getenv("FRONTEND_URL")

    return config


def save_config(config: WritingConfig) -> None:
    """Save configuration to file.

    Secret fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    def _secret(attr: str, value: str) -> str:
        return "" if attr in env_sourced else value

    data = {
        "supabase": {
            "url": _secret("url", config.supabase.url),
            "key": _secret("key", config.supabase.key),
            "table": config.supabase.table,
            "match_function": config.supabase.match_function,
            "ivfflat_probes": config.supabase.ivfflat_probes,
        },
        "embedding": {
            "model": config.embedding.model,
            "dimension": config.embedding.dimension,
            "batch_size": config.embedding.batch_size,
            "batch_delay": config.embedding.batch_delay,
        },
        "llm": {
            "anthropic_api_key": _secret("anthropic_api_key", config.llm.anthropic_api_key),
            "anthropic_model": config.llm.anthropic_model,
            "max_tokens": config.llm.max_tokens,
        },
        "search": {
            "threshold": config.search.threshold,
            "limit": config.search.limit,
            "topic_limit": config.search.topic_limit,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "frontend_url": config.server.frontend_url,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
