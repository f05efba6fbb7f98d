import os

import pytest

from internquest.config import settings

ENV_VARS = [
    "FIREBASE_PROJECT_ID",
    "GOOGLE_CLOUD_PROJECT",
    "GCLOUD_PROJECT",
    "GOOGLE_APPLICATION_CREDENTIALS",
    "FIREBASE_EMULATOR_HUB",
    "FUNCTIONS_EMULATOR",
    "ALLOW_EMULATOR_CREATE_USER",
    "LOOKUP_EMAIL_API_KEY",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "SMTP_FROM",
    "APP_BASE_URL",
    "USERS_COLLECTION_PATH",
    "STUDENT_ID_FIELD",
    "EXPO_ACCESS_TOKEN",
    "CORS_ALLOW_ORIGIN",
    "LOG_LEVEL",
    "FUNCTION_REGION",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    secrets_dir = tmp_path / "secrets"
    secrets_dir.mkdir()
    monkeypatch.setattr(settings, "SECRETS_DIR", secrets_dir)
    return secrets_dir


def test_defaults():
    cfg = settings.load_settings()
    assert cfg.project_id == ""
    assert cfg.region == "asia-southeast1"
    assert cfg.users_collection == "users"
    assert cfg.student_id_field == "studentId"
    assert cfg.emulator is False
    assert cfg.lookup_api_key == ""
    assert cfg.smtp_port is None
    assert cfg.id_token_jwks_url == settings.GOOGLE_SECURETOKEN_JWKS_URL
    assert cfg.cors_allow_origin == "*"


def test_project_id_fallbacks(monkeypatch):
    monkeypatch.setenv("GCLOUD_PROJECT", "from-gcloud")
    assert settings.load_settings().project_id == "from-gcloud"
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "from-google")
    assert settings.load_settings().project_id == "from-google"
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "internquest-prod")
    cfg = settings.load_settings()
    assert cfg.project_id == "internquest-prod"
    assert cfg.token_issuer == "https://securetoken.google.com/internquest-prod"


def test_smtp_and_collections(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.gmail.com")
    monkeypatch.setenv("SMTP_PORT", "465")
    monkeypatch.setenv("SMTP_USER", "relay@neu.edu.ph")
    monkeypatch.setenv("SMTP_PASSWORD", "app-password")
    monkeypatch.setenv("USERS_COLLECTION_PATH", " students ")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = settings.load_settings()

    assert cfg.smtp_port == 465
    assert cfg.smtp_password == "app-password"
    assert cfg.users_collection == "students"
    assert cfg.log_level == "DEBUG"


def test_bad_smtp_port(monkeypatch):
    monkeypatch.setenv("SMTP_PORT", "five-eighty-seven")
    with pytest.raises(RuntimeError, match="SMTP_PORT"):
        settings.load_settings()


def test_secret_file_takes_precedence(monkeypatch, clean_env):
    (clean_env / "lookup_email_api_key").write_text("from-file\n")
    monkeypatch.setenv("LOOKUP_EMAIL_API_KEY", "from-env")
    assert settings.load_settings().lookup_api_key == "from-file"


def test_empty_secret_file_falls_back_to_env(monkeypatch, clean_env):
    (clean_env / "smtp_password").write_text("  \n")
    monkeypatch.setenv("SMTP_PASSWORD", "from-env")
    assert settings.load_settings().smtp_password == "from-env"


def test_audit_key_is_exported(monkeypatch, clean_env):
    (clean_env / "audit_log_signing_key").write_text("secret-from-file")
    settings.load_settings()
    assert os.environ["AUDIT_LOG_SIGNING_KEY"] == "secret-from-file"


@pytest.mark.parametrize(
    "env,blocked",
    [
        ({}, False),
        ({"FIREBASE_EMULATOR_HUB": "127.0.0.1:4400"}, True),
        ({"FUNCTIONS_EMULATOR": "true"}, True),
        ({"FUNCTIONS_EMULATOR": "true", "ALLOW_EMULATOR_CREATE_USER": "TRUE"}, False),
    ],
)
def test_emulator_write_guard(monkeypatch, env, blocked):
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    assert settings.load_settings().emulator_writes_blocked is blocked
