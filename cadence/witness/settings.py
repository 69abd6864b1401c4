# cadence/witness/settings.py
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import yaml
from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cadence.schemas.cascade import ChainProfile


def _parse_list(val: str | None) -> List[str]:
    if not val:
        return []
    return [v.strip() for v in val.split(",") if v.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    service_name: str = Field("cadence-witness", alias="SERVICE_NAME")
    service_version: str = Field("0.1.0", alias="SERVICE_VERSION")
    node_name: str = Field("unknown", alias="NODE_NAME")
    log_level: str = Field("DEBUG", alias="LOG_LEVEL")

    # Bus
    cadence_bus_url: str = Field("redis://localhost:6379/0", alias="CADENCE_BUS_URL")
    cadence_bus_enabled: bool = Field(False, alias="CADENCE_BUS_ENABLED")
    heartbeat_interval_sec: float = Field(10.0, alias="HEARTBEAT_INTERVAL_SEC")
    health_channel: str = Field("cadence:system:health", alias="CADENCE_HEALTH_CHANNEL")
    error_channel: str = Field("cadence:system:error", alias="CADENCE_ERROR_CHANNEL")
    channel_head_output: str = Field("cadence:heart:output", alias="CHANNEL_HEAD_OUTPUT")
    channel_stimulus: str = Field("cadence:heart:stimulus", alias="CHANNEL_STIMULUS")
    stimulus_retry_sec: float = Field(5.0, alias="STIMULUS_RETRY_SEC")

    # Chain
    layer_orders: List[int] | str = Field(default_factory=lambda: [1, 3, 9, 27], alias="CADENCE_LAYER_ORDERS")
    max_batch_size: int = Field(10, alias="CADENCE_MAX_BATCH_SIZE")
    chain_profile_path: Optional[Path] = Field(None, alias="CADENCE_CHAIN_PROFILE_PATH")
    beat_interval_sec: float = Field(1.0, alias="CADENCE_BEAT_INTERVAL_SEC")

    # Stimulus sources
    clock_interval_sec: float = Field(5.0, alias="CLOCK_INTERVAL_SEC")
    headlines_enabled: bool = Field(True, alias="HEADLINES_ENABLED")
    headlines_url: str = Field("https://feeds.npr.org/1002/rss.xml", alias="HEADLINES_URL")
    headlines_interval_sec: float = Field(60.0, alias="HEADLINES_INTERVAL_SEC")
    script_snippet_path: Optional[Path] = Field(None, alias="SCRIPT_SNIPPET_PATH")
    script_snippet_lines: int = Field(10, alias="SCRIPT_SNIPPET_LINES")
    script_snippet_interval_sec: float = Field(60.0, alias="SCRIPT_SNIPPET_INTERVAL_SEC")
    memory_snippet_interval_sec: float = Field(60.0, alias="MEMORY_SNIPPET_INTERVAL_SEC")

    # Output journal
    journal_path: Path = Field(Path("output.txt"), alias="JOURNAL_PATH")

    # LLM
    ollama_url: str = Field("http://localhost:11434", alias="OLLAMA_URL")
    ollama_model: str = Field("llama3.2", alias="OLLAMA_MODEL")
    llm_num_predict: int = Field(255, alias="LLM_NUM_PREDICT")
    llm_temperature: float = Field(0.75, alias="LLM_TEMPERATURE")
    llm_num_ctx: int = Field(2048, alias="LLM_NUM_CTX")
    llm_retries: int = Field(2, alias="LLM_RETRIES")
    connect_timeout_sec: float = Field(10.0, alias="CONNECT_TIMEOUT_SEC")
    read_timeout_sec: float = Field(600.0, alias="READ_TIMEOUT_SEC")

    @field_validator("layer_orders", mode="before")
    @classmethod
    def _split_orders(cls, v: List[int] | str | None) -> List[int]:
        if v is None:
            return [1, 3, 9, 27]
        if isinstance(v, list):
            return [int(x) for x in v]
        text = str(v).strip()
        if text.startswith("["):
            return [int(x) for x in json.loads(text)]
        return [int(x) for x in _parse_list(text)]

    def llm_options(self) -> dict:
        return {
            "num_predict": self.llm_num_predict,
            "temperature": self.llm_temperature,
            "num_ctx": self.llm_num_ctx,
        }

    def chain_profile(self) -> ChainProfile:
        """
        Chain shape: the YAML profile when one is configured and readable,
        otherwise the env-driven orders and batch size.
        """
        fallback = ChainProfile(orders=list(self.layer_orders), max_batch_size=self.max_batch_size)
        path = self.chain_profile_path
        if not path:
            return fallback
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"Chain profile {path} not found; using env defaults")
            return fallback
        return ChainProfile(
            orders=raw.get("orders", fallback.orders),
            max_batch_size=raw.get("max_batch_size", fallback.max_batch_size),
        )


settings = Settings()
