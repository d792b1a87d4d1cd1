from app.core.config import Settings


def test_secrets_from_environment_are_configured():
    assert Settings(_env_file=None).JWT_SECRETS_CONFIGURED


def test_generated_secrets_are_flagged(monkeypatch):
    monkeypatch.delenv("JWT_REFRESH_SECRET", raising=False)

    settings = Settings(_env_file=None)

    assert settings.JWT_REFRESH_SECRET
    assert not settings.JWT_SECRETS_CONFIGURED


def test_generated_secrets_differ_per_instance(monkeypatch):
    monkeypatch.delenv("JWT_ACCESS_SECRET", raising=False)
    monkeypatch.delenv("JWT_REFRESH_SECRET", raising=False)

    first, second = Settings(_env_file=None), Settings(_env_file=None)

    assert first.JWT_ACCESS_SECRET != second.JWT_ACCESS_SECRET
