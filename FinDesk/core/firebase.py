# FinDesk/core/firebase.py
import logging
import os
from functools import lru_cache

import firebase_admin
from firebase_admin import credentials, firestore, storage

from FinDesk.core.config import settings

logger = logging.getLogger(__name__)

DEALS_COLLECTION = "deals"
LENDERS_COLLECTION = "lenders"
LENDER_DOCUMENTS_COLLECTION = "lenderDocuments"
USER_CONFIG_COLLECTION = "userConfig"
USERS_COLLECTION = "users"
CHAT_HISTORY_COLLECTION = "chatHistory"
VECTOR_STORES_SUBCOLLECTION = "vectorStores"
OPENAI_FILES_SUBCOLLECTION = "openaiFiles"


def get_app() -> firebase_admin.App:
    """Initialize the default Firebase app once and return it."""
    if firebase_admin._apps:
        return firebase_admin.get_app()

    options = {}
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket

    if os.path.exists(settings.firebase_credentials_path):
        cred = credentials.Certificate(settings.firebase_credentials_path)
        app = firebase_admin.initialize_app(cred, options or None)
    else:
        logger.info(
            "No service account at %s, using application default credentials",
            settings.firebase_credentials_path,
        )
        app = firebase_admin.initialize_app(options=options or None)
    logger.info("Firebase app initialized")
    return app


@lru_cache(maxsize=1)
def get_db():
    return firestore.client(app=get_app())


@lru_cache(maxsize=1)
def get_bucket():
    return storage.bucket(app=get_app())


SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP
