"""Pytest shared fixtures."""
import pathlib
import sys
import time
from types import SimpleNamespace
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa

from internquest.api import decorators
from internquest.config import AppConfig, settings
from internquest.core import audit
from internquest.flask_app import create_app
from tests.fakes import make_caller, make_services

PROJECT_ID = "internquest-test"
ISSUER = f"https://securetoken.google.com/{PROJECT_ID}"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Fail loudly on any real HTTP call from unit tests."""

    def _unexpected(method):
        def _call(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _call

    monkeypatch.setattr(requests, "post", _unexpected("POST"))
    monkeypatch.setattr(requests, "get", _unexpected("GET"))


@pytest.fixture(autouse=True)
def audit_log(monkeypatch, tmp_path):
    """Write audit events under tmp_path with a known signing key."""
    log_dir = tmp_path / "audit"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", log_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", log_dir / "admin-events.jsonl")
    monkeypatch.setattr(settings, "SECRETS_DIR", tmp_path / "secrets")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-audit-key")
    return log_dir / "admin-events.jsonl"


# ─────────────────────────────────────────────────────────────────────────────
# Collaborators and Callers
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def services():
    return make_services()


@pytest.fixture()
def admin():
    return make_caller("admin", uid="admin-1")


@pytest.fixture()
def coordinator():
    return make_caller("coordinator", uid="coord-1")


@pytest.fixture()
def adviser():
    return make_caller("adviser", uid="adviser-1")


# ─────────────────────────────────────────────────────────────────────────────
# Flask App and ID Tokens
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for ID token signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return {"private_key": private_key, "public_key": private_key.public_key()}


@pytest.fixture()
def app_config():
    return AppConfig(project_id=PROJECT_ID, lookup_api_key="")


@pytest.fixture()
def flask_app(monkeypatch, app_config, services, rsa_key_pair):
    """Flask app wired to in-memory fakes, trusting the test RSA key."""

    class _StubJWKS:
        def get_signing_key_from_jwt(self, token):
            return SimpleNamespace(key=rsa_key_pair["public_key"])

    monkeypatch.setattr(decorators, "_jwks_client", None)
    monkeypatch.setattr(decorators, "get_jwks_client", lambda: _StubJWKS())

    app = create_app(config=app_config, services=services)
    app.config.update(TESTING=True)
    return app


@pytest.fixture()
def client(flask_app):
    with flask_app.test_client() as client:
        yield client


def create_id_token(
    rsa_key_pair: dict,
    uid: str = "user-123",
    role: Optional[str] = None,
    issuer: str = ISSUER,
    audience: str = PROJECT_ID,
    exp_offset: int = 3600,
) -> str:
    """Create an RS256-signed Firebase-style ID token."""
    now = int(time.time())
    payload = {
        "iss": issuer,
        "aud": audience,
        "sub": uid,
        "user_id": uid,
        "iat": now,
        "exp": now + exp_offset,
        "email": f"{uid}@neu.edu.ph",
    }
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, rsa_key_pair["private_key"], algorithm="RS256", headers={"kid": "test-key"})


@pytest.fixture()
def bearer(rsa_key_pair):
    """Build Authorization headers for a caller with the given role."""

    def _bearer(role: Optional[str] = None, uid: str = "user-123", **kwargs) -> dict:
        token = create_id_token(rsa_key_pair, uid=uid, role=role, **kwargs)
        return {"Authorization": f"Bearer {token}"}

    return _bearer
