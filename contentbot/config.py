import logging
import os
from dotenv import load_dotenv

load_dotenv()


def _csv(name: str, default: str) -> list[str]:
    return [m.strip() for m in os.getenv(name, default).split(",") if m.strip()]


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./contentbot.db")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # LLM provider (HuggingFace-style inference endpoint, one URL per model)
    llm_api_base: str = os.getenv("LLM_API_BASE", "https://api-inference.huggingface.co/models")
    llm_api_token: str = os.getenv("LLM_API_TOKEN", os.getenv("HF_API_TOKEN", ""))
    llm_timeout: float = float(os.getenv("LLM_TIMEOUT", "120"))
    # Comma separated; tried in order until one answers
    writer_models: list[str] = _csv("WRITER_MODELS", "mistralai/Mistral-7B-Instruct-v0.3")
    analyst_models: list[str] = _csv("ANALYST_MODELS", "mistralai/Mistral-7B-Instruct-v0.3")

    search_api_url: str = os.getenv("SEARCH_API_URL", "https://api.tavily.com/search")
    search_api_key: str = os.getenv("SEARCH_API_KEY", "")
    unsplash_access_key: str = os.getenv("UNSPLASH_ACCESS_KEY", "")

    fernet_key: str = os.getenv("FERNET_KEY", "")

    research_max_attempts: int = int(os.getenv("RESEARCH_MAX_ATTEMPTS", "3"))
    qc_max_runs: int = int(os.getenv("QC_MAX_RUNS", "3"))
    validation_batch_size: int = int(os.getenv("VALIDATION_BATCH_SIZE", "5"))
    validation_max_concurrency: int = int(os.getenv("VALIDATION_MAX_CONCURRENCY", "3"))
    # When the structured validation report cannot be parsed, keep the draft
    # and mark the report degraded instead of failing the generation.
    validation_fail_open: bool = _flag("VALIDATION_FAIL_OPEN", "true")
    correction_confidence_threshold: float = float(os.getenv("CORRECTION_CONFIDENCE_THRESHOLD", "0.7"))

    worker_concurrency: int = int(os.getenv("WORKER_CONCURRENCY", "2"))
    webhook_timeout: float = float(os.getenv("WEBHOOK_TIMEOUT", "30"))
    webhook_max_attempts: int = int(os.getenv("WEBHOOK_MAX_ATTEMPTS", "3"))
    webhook_retry_base_seconds: int = int(os.getenv("WEBHOOK_RETRY_BASE_SECONDS", "30"))
    scheduler_cron: str = os.getenv("SCHEDULER_CRON", "*/5 * * * *")


settings = Settings()


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
