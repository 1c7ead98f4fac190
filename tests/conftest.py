"""
Shared fixtures.
"""

import pytest

from app.core.config import settings
from app.db import mongo
from app.db.mongo import (
    APPLICATIONS_COLLECTION,
    CONTACTS_COLLECTION,
    INTERNS_COLLECTION,
    USERS_COLLECTION,
)
from tests.fakes import make_collection


@pytest.fixture
def collections(monkeypatch):
    """All four collections, installed as the active database."""
    fakes = {
        USERS_COLLECTION: make_collection(USERS_COLLECTION),
        CONTACTS_COLLECTION: make_collection(CONTACTS_COLLECTION),
        APPLICATIONS_COLLECTION: make_collection(APPLICATIONS_COLLECTION),
        INTERNS_COLLECTION: make_collection(INTERNS_COLLECTION),
    }
    monkeypatch.setattr(mongo, "_database", fakes)
    return fakes


@pytest.fixture
def users(collections):
    return collections[USERS_COLLECTION]


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
