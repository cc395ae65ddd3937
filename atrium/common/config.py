"""
Configuration Management for Atrium

Loads configuration from ~/.atrium/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("atrium.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".atrium"
CONFIG_PATH = CONFIG_DIR / "config.json"
DATA_DIR = CONFIG_DIR / "data"
CONVERSATIONS_PATH = DATA_DIR / "conversations.json"

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration"""
    mode: str = "femb"  # femb (fastembed, on-device), openai, or none
    model: str = DEFAULT_EMBEDDING_MODEL
    openai_api_key: str = ""


@dataclass
class VectorStoreConfig:
    """Vector store configuration"""
    snapshot_path: str = ""  # empty = memory only


@dataclass
class WorkspaceConfig:
    """Workspace content store configuration"""
    snapshot_path: str = ""  # JSON seed for the in-memory workspace store


@dataclass
class RetrievalConfig:
    """Retrieval tuning"""
    score_threshold: float = 0.3
    overfetch_factor: int = 3
    search_limit: int = 8
    specialist_context_limit: int = 5
    semantic_first: bool = True


@dataclass
class AssistantAPIConfig:
    """Specialist / language-model HTTP API"""
    base_url: str = "http://localhost:3000"
    specialist_timeout: float = 20.0
    model_timeout: float = 30.0


@dataclass
class CalendarConfig:
    """Calendar provider configuration"""
    timeout: float = 5.0


@dataclass
class LLMConfig:
    """Language model backend configuration"""
    backend: str = "api"  # "api" (assistant HTTP API) or "direct" (LLMClient)
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"


@dataclass
class ConversationConfig:
    """Conversation store configuration"""
    store_path: str = str(CONVERSATIONS_PATH)
    history_window: int = 5


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class AtriumConfig:
    """Main Atrium configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    assistant_api: AssistantAPIConfig = field(default_factory=AssistantAPIConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    section = data.get("embedding", {})
    return EmbeddingConfig(
        mode=section.get("mode", "femb"),
        model=section.get("model", DEFAULT_EMBEDDING_MODEL),
        openai_api_key=section.get("openai_api_key", ""),
    )


def _parse_retrieval_config(data: dict) -> RetrievalConfig:
    section = data.get("retrieval", {})
    return RetrievalConfig(
        score_threshold=float(section.get("score_threshold", 0.3)),
        overfetch_factor=int(section.get("overfetch_factor", 3)),
        search_limit=int(section.get("search_limit", 8)),
        specialist_context_limit=int(section.get("specialist_context_limit", 5)),
        semantic_first=bool(section.get("semantic_first", True)),
    )


def _parse_assistant_api_config(data: dict) -> AssistantAPIConfig:
    section = data.get("assistant_api", {})
    return AssistantAPIConfig(
        base_url=section.get("base_url", "http://localhost:3000"),
        specialist_timeout=float(section.get("specialist_timeout", 20.0)),
        model_timeout=float(section.get("model_timeout", 30.0)),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    section = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        backend=section.get("backend", defaults.backend),
        provider=section.get("provider", defaults.provider),
        anthropic_api_key=section.get("anthropic_api_key", ""),
        anthropic_model=section.get("anthropic_model", defaults.anthropic_model),
        openai_api_key=section.get("openai_api_key", ""),
        openai_model=section.get("openai_model", defaults.openai_model),
        google_api_key=section.get("google_api_key", ""),
        google_model=section.get("google_model", defaults.google_model),
    )


def _parse_conversation_config(data: dict) -> ConversationConfig:
    section = data.get("conversation", {})
    return ConversationConfig(
        store_path=section.get("store_path", str(CONVERSATIONS_PATH)),
        history_window=int(section.get("history_window", 5)),
    )


def load_config() -> AtriumConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.atrium/config.json)
    3. Default values
    """
    config = AtriumConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.vector_store = VectorStoreConfig(
                snapshot_path=data.get("vector_store", {}).get("snapshot_path", ""),
            )
            config.workspace = WorkspaceConfig(
                snapshot_path=data.get("workspace", {}).get("snapshot_path", ""),
            )
            config.retrieval = _parse_retrieval_config(data)
            config.assistant_api = _parse_assistant_api_config(data)
            config.calendar = CalendarConfig(
                timeout=float(data.get("calendar", {}).get("timeout", 5.0)),
            )
            config.llm = _parse_llm_config(data)
            config.conversation = _parse_conversation_config(data)
            server_data = data.get("server", {})
            config.server = ServerConfig(
                host=server_data.get("host", "0.0.0.0"),
                port=int(server_data.get("port", 8080)),
            )
        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Environment variable overrides
    if os.getenv("EMBEDDING_MODE") is not None:
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("ATRIUM_SCORE_THRESHOLD"):
        config.retrieval.score_threshold = float(os.getenv("ATRIUM_SCORE_THRESHOLD"))
    if os.getenv("ATRIUM_ASSISTANT_API_URL"):
        config.assistant_api.base_url = os.getenv("ATRIUM_ASSISTANT_API_URL")
    if os.getenv("ATRIUM_CONVERSATIONS_PATH") is not None:
        config.conversation.store_path = os.getenv("ATRIUM_CONVERSATIONS_PATH")
    if os.getenv("ATRIUM_WORKSPACE_SNAPSHOT"):
        config.workspace.snapshot_path = os.getenv("ATRIUM_WORKSPACE_SNAPSHOT")
    if os.getenv("ATRIUM_PORT"):
        config.server.port = int(os.getenv("ATRIUM_PORT"))

    # Secrets are tracked so save_config never writes them to disk
    _env_secret_map = {
        "ANTHROPIC_API_KEY": (config.llm, "anthropic_api_key"),
        "OPENAI_API_KEY": (config.llm, "openai_api_key"),
        "GOOGLE_API_KEY": (config.llm, "google_api_key"),
        "GEMINI_API_KEY": (config.llm, "google_api_key"),
    }
    for env_var, (section, attr) in _env_secret_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(section, attr, val)
            config._env_sourced_keys.add(attr)

    if config.llm.openai_api_key and not config.embedding.openai_api_key:
        config.embedding.openai_api_key = config.llm.openai_api_key
        if "openai_api_key" in config._env_sourced_keys:
            config._env_sourced_keys.add("embedding.openai_api_key")

    if os.getenv("ATRIUM_LLM_BACKEND"):
        config.llm.backend = os.getenv("ATRIUM_LLM_BACKEND")
    if os.getenv("ATRIUM_LLM_PROVIDER"):
        config.llm.provider = os.getenv("ATRIUM_LLM_PROVIDER")

    return config


def save_config(config: AtriumConfig) -> None:
    """Save configuration to file.

    API keys sourced from environment variables are written as empty strings
    so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "backend": config.llm.backend,
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    embedding_key = config.embedding.openai_api_key
    if "embedding.openai_api_key" in env_sourced:
        embedding_key = ""

    data = {
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
            "openai_api_key": embedding_key,
        },
        "vector_store": {"snapshot_path": config.vector_store.snapshot_path},
        "workspace": {"snapshot_path": config.workspace.snapshot_path},
        "retrieval": {
            "score_threshold": config.retrieval.score_threshold,
            "overfetch_factor": config.retrieval.overfetch_factor,
            "search_limit": config.retrieval.search_limit,
            "specialist_context_limit": config.retrieval.specialist_context_limit,
            "semantic_first": config.retrieval.semantic_first,
        },
        "assistant_api": {
            "base_url": config.assistant_api.base_url,
            "specialist_timeout": config.assistant_api.specialist_timeout,
            "model_timeout": config.assistant_api.model_timeout,
        },
        "calendar": {"timeout": config.calendar.timeout},
        "llm": llm_section,
        "conversation": {
            "store_path": config.conversation.store_path,
            "history_window": config.conversation.history_window,
        },
        "server": {"host": config.server.host, "port": config.server.port},
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    DATA_DIR.mkdir(parents=True, exist_ok=True)
