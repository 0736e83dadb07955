"""
Credential store - per-tenant Selling Partner settings.

Settings live in ``tenant_settings`` under the ``amazon`` key as an
encrypted JSON blob: {client_id, client_secret, refresh_token, marketplace_id}.
"""

import json
import logging
from typing import Optional
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sellersync.crypto import decrypt_json, encrypt_json
from sellersync.models import TenantSetting
from sellersync.schemas import Credential
from sellersync.utils import utcnow

logger = logging.getLogger(__name__)

AMAZON_SETTINGS_KEY = "amazon"


class SettingsCredentialStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, tenant: int) -> Optional[Credential]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(TenantSetting.value).where(
                    TenantSetting.org_id == tenant,
                    TenantSetting.key == AMAZON_SETTINGS_KEY,
                )
            )
            stored = result.scalar_one_or_none()

        if not stored:
            return None
        try:
            return Credential.model_validate(decrypt_json(stored))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Amazon settings for tenant {tenant} are incomplete or unreadable: {e}")
            return None

    async def save(self, tenant: int, credential: Credential) -> None:
        payload = encrypt_json(credential.model_dump())
        async with self.session_factory() as db:
            result = await db.execute(
                select(TenantSetting).where(
                    TenantSetting.org_id == tenant,
                    TenantSetting.key == AMAZON_SETTINGS_KEY,
                )
            )
            existing = result.scalar_one_or_none()
            if existing:
                existing.value = payload
                existing.updated_at = utcnow()
            else:
                db.add(TenantSetting(org_id=tenant, key=AMAZON_SETTINGS_KEY, value=payload))
            await db.commit()
        logger.info(f"Saved Amazon settings for tenant {tenant}")
