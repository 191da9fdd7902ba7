from typing import Annotated, Any, List, Optional
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator

# Pattern classes the tokenizer knows how to build; see domain/tokenizer.py
KNOWN_PII_CLASSES = ("EMAIL", "PHONE", "SF_ID")
GENERATION_BACKENDS = ("llm", "http", "mock")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _coerce_list(v: Any) -> Any:
    if isinstance(v, str):
        s = v.strip()
        if s.startswith("["):  # JSON
            import json

            try:
                arr = json.loads(s)
                if isinstance(arr, list):
                    return [str(x) for x in arr]
            except ValueError:
                pass
        # CSV
        return [p.strip() for p in s.split(",") if p.strip()]
    return v


class Settings(BaseSettings):
    APP_NAME: str = Field(
        default="Quote Broker API",
        validation_alias=AliasChoices("APP_NAME"),
    )
    APP_VERSION: str = Field(
        default="1.0.0",
        validation_alias=AliasChoices("APP_VERSION"),
    )
    DEBUG: bool = Field(
        default=False,
        validation_alias=AliasChoices("DEBUG"),
    )
    LOG_LEVEL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LOG_LEVEL"),
    )
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=[],
        validation_alias=AliasChoices("CORS_ORIGINS"),
    )
    ALLOWED_ORG_IDS: Annotated[List[str], NoDecode] = Field(
        default=[],
        validation_alias=AliasChoices("ALLOWED_ORG_IDS"),
    )

    PII_TOKENIZATION_ENABLED: bool = Field(
        default=True,
        validation_alias=AliasChoices("PII_TOKENIZATION_ENABLED", "PII_TOKENISATION_ENABLED"),
    )
    PII_CLASSES: Annotated[List[str], NoDecode] = Field(
        default=list(KNOWN_PII_CLASSES),
        validation_alias=AliasChoices("PII_CLASSES"),
    )
    PRICE_TOLERANCE: float = Field(
        default=0.01,
        ge=0,
        validation_alias=AliasChoices("PRICE_TOLERANCE"),
    )

    GENERATION_BACKEND: str = Field(
        default="mock",
        validation_alias=AliasChoices("GENERATION_BACKEND"),
    )
    GENERATION_BASE_URL: str = Field(
        default="http://localhost:8002/generate",
        validation_alias=AliasChoices("GENERATION_BASE_URL"),
    )
    GENERATION_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices("GENERATION_TIMEOUT"),
    )

    LLM_MODEL: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("LLM_MODEL"),
    )
    LLM_TEMPERATURE: float = Field(
        default=0.1,
        validation_alias=AliasChoices("LLM_TEMPERATURE"),
    )
    LLM_MAX_TOKENS: int = Field(
        default=4096,
        ge=1,
        validation_alias=AliasChoices("LLM_MAX_TOKENS"),
    )
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "LLM_API_KEY"),
    )

    MOCK_DISCOUNT_PERCENT: float = Field(
        default=10.0,
        ge=0,
        le=100,
        validation_alias=AliasChoices("MOCK_DISCOUNT_PERCENT"),
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("CORS_ORIGINS", "ALLOWED_ORG_IDS", mode="before")
    @classmethod
    def _coerce_csv(cls, v: Any) -> List[str]:
        return _coerce_list(v)

    @field_validator("PII_CLASSES", mode="before")
    @classmethod
    def _coerce_pii_classes(cls, v: Any) -> List[str]:
        labels = [str(x).strip().upper() for x in (_coerce_list(v) or [])]
        unknown = [x for x in labels if x not in KNOWN_PII_CLASSES]
        if unknown:
            raise ValueError(f"unknown PII classes: {', '.join(unknown)}")
        return labels

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _check_log_level(cls, v: Any) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        level = str(v).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("GENERATION_BACKEND", mode="before")
    @classmethod
    def _check_backend(cls, v: Any) -> str:
        backend = str(v or "").strip().lower()
        if backend not in GENERATION_BACKENDS:
            raise ValueError(
                f"GENERATION_BACKEND must be one of {', '.join(GENERATION_BACKENDS)}"
            )
        return backend


settings = Settings()
