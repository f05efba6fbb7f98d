"""Firebase Admin bootstrap and collaborator wiring."""
from __future__ import annotations
import logging

import firebase_admin
from firebase_admin import credentials, firestore

from internquest.config.settings import AppConfig
from internquest.core.mailer import SmtpMailer
from internquest.core.push import ExpoPushGateway
from internquest.core.services import Services

from .documents import FirestoreDocumentStore
from .identity import FirebaseIdentityProvider

logger = logging.getLogger(__name__)


def initialize_firebase(config: AppConfig) -> firebase_admin.App:
    """Return the default Firebase app, initializing it once per process.

    Uses the service-account file when GOOGLE_APPLICATION_CREDENTIALS points at
    one, Application Default Credentials otherwise.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if config.credentials_file:
        credential = credentials.Certificate(config.credentials_file)
    else:
        credential = credentials.ApplicationDefault()
    options = {"projectId": config.project_id} if config.project_id else None
    app = firebase_admin.initialize_app(credential, options)
    logger.info("Firebase initialized (project=%s, emulator=%s)", config.project_id or "-", config.emulator)
    return app


def build_services(config: AppConfig) -> Services:
    """Build the production collaborator bundle."""
    app = initialize_firebase(config)
    return Services(
        identity=FirebaseIdentityProvider(app),
        store=FirestoreDocumentStore(firestore.client(app)),
        mailer=SmtpMailer(
            host=config.smtp_host,
            port=config.smtp_port,
            user=config.smtp_user,
            password=config.smtp_password,
            from_address=config.smtp_from,
        ),
        push=ExpoPushGateway(config.expo_push_url, config.expo_access_token or None),
        users_collection=config.users_collection,
        student_id_field=config.student_id_field,
        app_base_url=config.app_base_url or None,
    )
