"""
Tests for per-tenant Selling Partner settings storage.
"""

import json
import os
from unittest.mock import patch
import pytest
from cryptography.fernet import Fernet
from sqlalchemy import select

from sellersync.config import get_settings
from sellersync.crypto import reset_fernet
from sellersync.models import TenantSetting
from sellersync.services.credential_store import AMAZON_SETTINGS_KEY, SettingsCredentialStore


@pytest.fixture
def encryption_key():
    key = Fernet.generate_key().decode()
    with patch.dict(os.environ, {"ENCRYPTION_KEY": key, "ENVIRONMENT": "development"}, clear=False):
        get_settings.cache_clear()
        reset_fernet()
        yield key
    get_settings.cache_clear()
    reset_fernet()


@pytest.mark.anyio
async def test_missing_settings_return_none(session_factory):
    store = SettingsCredentialStore(session_factory)
    assert await store.get(1) is None


@pytest.mark.anyio
async def test_saved_credential_is_encrypted_at_rest(session_factory, credential, encryption_key):
    store = SettingsCredentialStore(session_factory)

    await store.save(1, credential)

    async with session_factory() as db:
        stored = (await db.execute(select(TenantSetting.value))).scalar_one()
    assert "Atzr|refresh" not in stored
    assert json.loads(Fernet(encryption_key.encode()).decrypt(stored.encode()))["client_id"] == credential.client_id

    assert await store.get(1) == credential
    assert await store.get(2) is None


@pytest.mark.anyio
async def test_save_replaces_existing_settings(session_factory, credential, encryption_key):
    store = SettingsCredentialStore(session_factory)

    await store.save(1, credential)
    await store.save(1, credential.model_copy(update={"marketplace_id": "A1PA6795UKMFR9"}))

    async with session_factory() as db:
        rows = (await db.execute(select(TenantSetting))).scalars().all()
    assert len(rows) == 1
    assert (await store.get(1)).marketplace_id == "A1PA6795UKMFR9"


@pytest.mark.anyio
async def test_incomplete_settings_are_treated_as_missing(session_factory):
    async with session_factory() as db:
        db.add(TenantSetting(org_id=1, key=AMAZON_SETTINGS_KEY, value=json.dumps({"client_id": "only"})))
        await db.commit()

    store = SettingsCredentialStore(session_factory)
    assert await store.get(1) is None
