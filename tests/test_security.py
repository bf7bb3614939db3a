import json

import pytest

from app.core.config import Settings
from app.core.security import (
    IdentityVerifier,
    DevelopmentIdentityVerifier,
    InvalidCredentialsError,
    StaticTokenVerifier,
    build_identity_verifier,
)
from tests.conftest import ALICE, BOB


def test_development_verifier_accepts_any_token():
    verifier = DevelopmentIdentityVerifier(ALICE)

    assert verifier.verify("anything") == ALICE
    with pytest.raises(InvalidCredentialsError):
        verifier.verify("")


def test_static_verifier_from_file(tmp_path):
    tokens_file = tmp_path / "tokens.json"
    tokens_file.write_text(
        json.dumps({"t-1": {"uid": "bob-uid", "email": "bob@example.com", "name": "Bob"}})
    )

    verifier = StaticTokenVerifier.from_file(str(tokens_file))

    assert verifier.verify("t-1") == BOB
    with pytest.raises(InvalidCredentialsError):
        verifier.verify("t-2")


def test_build_identity_verifier_development(monkeypatch):
    monkeypatch.setenv("AUTH_MODE", "development")
    monkeypatch.setenv("DEV_USER_EMAIL", "dev@example.com")

    verifier = build_identity_verifier(Settings())

    assert isinstance(verifier, DevelopmentIdentityVerifier)
    assert verifier.verify("x").email == "dev@example.com"


def test_build_identity_verifier_static_requires_file(monkeypatch):
    monkeypatch.setenv("AUTH_MODE", "static")
    monkeypatch.delenv("AUTH_TOKENS_FILE", raising=False)

    with pytest.raises(ValueError):
        build_identity_verifier(Settings())


def test_build_identity_verifier_unknown_mode(monkeypatch):
    monkeypatch.setenv("AUTH_MODE", "magic")

    with pytest.raises(ValueError):
        build_identity_verifier(Settings())


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("REQUIRE_FUTURE_EVENT_DATE", "false")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, https://app.example.com")
    monkeypatch.setenv("EVENTS_TABLE_NAME", "Events_Dev")

    settings = Settings()

    assert settings.require_future_event_date is False
    assert settings.cors_origins == ["http://localhost:3000", "https://app.example.com"]
    assert settings.events_table_name == "Events_Dev"


def test_identity_verifier_is_abstract():
    with pytest.raises(TypeError):
        IdentityVerifier()
