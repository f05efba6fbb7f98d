"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SECRETS_DIR = Path("/run/secrets")
DEFAULT_REGION = "asia-southeast1"
GOOGLE_SECURETOKEN_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
)
EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


def load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Returns:
        Secret value or None if not found
    """
    secret_file = SECRETS_DIR / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.debug("Loaded %s from %s", secret_name, SECRETS_DIR)
                return secret_value
        except OSError as exc:
            logger.warning("Failed to read %s/%s: %s", SECRETS_DIR, secret_name, exc)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").strip().lower() == "true"


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer (got {raw!r}).")


@dataclass
class AppConfig:
    """Application configuration container."""
    # Firebase
    project_id: str = ""
    credentials_file: str = ""
    region: str = DEFAULT_REGION
    users_collection: str = "users"
    student_id_field: str = "studentId"

    # Emulator
    emulator: bool = False
    allow_emulator_create_user: bool = False

    # Shared-secret header for HTTP functions
    lookup_api_key: str = ""

    # SMTP relay
    smtp_host: str = ""
    smtp_port: Optional[int] = None
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""

    # Password-setup callback
    app_base_url: str = ""

    # ID tokens
    id_token_jwks_url: str = GOOGLE_SECURETOKEN_JWKS_URL

    # Push
    expo_push_url: str = EXPO_PUSH_URL
    expo_access_token: str = ""

    # HTTP
    cors_allow_origin: str = "*"
    log_level: str = "INFO"

    @property
    def token_issuer(self) -> str:
        return f"https://securetoken.google.com/{self.project_id}"

    @property
    def emulator_writes_blocked(self) -> bool:
        """True when running against the emulator without the explicit write opt-in."""
        return self.emulator and not self.allow_emulator_create_user


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    project_id = (
        os.environ.get("FIREBASE_PROJECT_ID")
        or os.environ.get("GOOGLE_CLOUD_PROJECT")
        or os.environ.get("GCLOUD_PROJECT")
        or ""
    ).strip()

    emulator = bool(os.environ.get("FIREBASE_EMULATOR_HUB")) or _env_flag("FUNCTIONS_EMULATOR")

    # Secrets
    lookup_api_key = load_secret_from_file("lookup_email_api_key", "LOOKUP_EMAIL_API_KEY") or ""
    smtp_password = load_secret_from_file("smtp_password", "SMTP_PASSWORD") or ""
    expo_access_token = load_secret_from_file("expo_access_token", "EXPO_ACCESS_TOKEN") or ""

    # The audit trail reads its key from the environment
    audit_log_signing_key = load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY")
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key
    else:
        logger.warning("AUDIT_LOG_SIGNING_KEY not set; audit events will be unsigned")

    config = AppConfig(
        project_id=project_id,
        credentials_file=os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", ""),
        region=os.environ.get("FUNCTION_REGION", DEFAULT_REGION),
        users_collection=os.environ.get("USERS_COLLECTION_PATH", "users").strip() or "users",
        student_id_field=os.environ.get("STUDENT_ID_FIELD", "studentId").strip() or "studentId",
        emulator=emulator,
        allow_emulator_create_user=_env_flag("ALLOW_EMULATOR_CREATE_USER"),
        lookup_api_key=lookup_api_key,
        smtp_host=os.environ.get("SMTP_HOST", ""),
        smtp_port=_env_int("SMTP_PORT"),
        smtp_user=os.environ.get("SMTP_USER", ""),
        smtp_password=smtp_password,
        smtp_from=os.environ.get("SMTP_FROM", ""),
        app_base_url=os.environ.get("APP_BASE_URL", ""),
        id_token_jwks_url=os.environ.get("ID_TOKEN_JWKS_URL", GOOGLE_SECURETOKEN_JWKS_URL),
        expo_push_url=os.environ.get("EXPO_PUSH_URL", EXPO_PUSH_URL),
        expo_access_token=expo_access_token,
        cors_allow_origin=os.environ.get("CORS_ALLOW_ORIGIN", "*"),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )

    if not config.project_id:
        logger.warning("No Firebase project id configured; ID tokens cannot be verified")
    logger.info(
        "Settings loaded: project=%s region=%s users=%s emulator=%s smtp=%s api_key=%s",
        config.project_id or "-",
        config.region,
        config.users_collection,
        config.emulator,
        "configured" if config.smtp_host else "missing",
        "set" if config.lookup_api_key else "unset",
    )
    return config
