import pytest
from pydantic import ValidationError

from quote_api.core.config import Settings


def test_defaults(monkeypatch):
    for name in (
        "PII_CLASSES", "GENERATION_BACKEND", "ALLOWED_ORG_IDS",
        "PRICE_TOLERANCE", "PII_TOKENIZATION_ENABLED", "PII_TOKENISATION_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)

    s = Settings(_env_file=None)

    assert s.PII_CLASSES == ["EMAIL", "PHONE", "SF_ID"]
    assert s.GENERATION_BACKEND == "mock"
    assert s.PRICE_TOLERANCE == 0.01
    assert s.ALLOWED_ORG_IDS == []
    assert s.PII_TOKENIZATION_ENABLED is True


def test_lists_accept_csv_and_json_from_env(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORG_IDS", "00D1, 00D2,,")
    monkeypatch.setenv("CORS_ORIGINS", '["https://a.example", "https://b.example"]')
    monkeypatch.setenv("PII_CLASSES", "email,sf_id")

    s = Settings(_env_file=None)

    assert s.ALLOWED_ORG_IDS == ["00D1", "00D2"]
    assert s.CORS_ORIGINS == ["https://a.example", "https://b.example"]
    assert s.PII_CLASSES == ["EMAIL", "SF_ID"]


def test_legacy_env_names(monkeypatch):
    monkeypatch.delenv("PII_TOKENIZATION_ENABLED", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("PII_TOKENISATION_ENABLED", "false")
    monkeypatch.setenv("LLM_API_KEY", "sk-test")

    s = Settings(_env_file=None)

    assert s.PII_TOKENIZATION_ENABLED is False
    assert s.OPENAI_API_KEY == "sk-test"


@pytest.mark.parametrize(
    "env",
    [
        {"PII_CLASSES": "EMAIL,SSN"},
        {"GENERATION_BACKEND": "grpc"},
        {"PRICE_TOLERANCE": "-0.5"},
    ],
)
def test_invalid_values_are_rejected(monkeypatch, env):
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
