from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pymongo import MongoClient, ASCENDING
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from fbr_invoicing.config.settings import settings
from fbr_invoicing.models.tenant import FbrEnvironment, SellerInfo, TenantFbrSettings

logger = logging.getLogger(__name__)


class TenantSettingsRepository(ABC):
    """Per-tenant FBR credentials, one record per (tenant, environment)."""

    @abstractmethod
    def get_tenant_fbr_settings(
        self, tenant_id: str, environment: FbrEnvironment
    ) -> Optional[TenantFbrSettings]:
        ...

    @abstractmethod
    def save_tenant_fbr_settings(self, tenant_settings: TenantFbrSettings) -> TenantFbrSettings:
        ...

    @abstractmethod
    def list_tenant_fbr_settings(self, tenant_id: str) -> List[TenantFbrSettings]:
        ...


class InMemoryTenantSettingsRepository(TenantSettingsRepository):
    def __init__(self, initial: Optional[List[TenantFbrSettings]] = None):
        self._data: Dict[Tuple[str, FbrEnvironment], TenantFbrSettings] = {}
        for item in initial or []:
            self.save_tenant_fbr_settings(item)

    def get_tenant_fbr_settings(self, tenant_id, environment):
        found = self._data.get((tenant_id, FbrEnvironment(environment)))
        return found if found and found.is_active else None

    def save_tenant_fbr_settings(self, tenant_settings):
        stored = tenant_settings.model_copy(update={"updated_at": datetime.utcnow()})
        self._data[(stored.tenant_id, stored.environment)] = stored
        return stored

    def list_tenant_fbr_settings(self, tenant_id):
        return [s for (tid, _), s in sorted(self._data.items(), key=lambda kv: kv[0][1].value) if tid == tenant_id]


class MongoTenantSettingsRepository(TenantSettingsRepository):
    def __init__(
        self,
        conn_str: Optional[str] = None,
        db_name: Optional[str] = None,
        collection: Optional[str] = None,
        coll: Optional[Collection] = None,
    ):
        self.conn_str = conn_str or settings.MONGODB_URL
        self.db_name = db_name or settings.MONGODB_DATABASE
        self.collection = collection or settings.MONGODB_TENANT_SETTINGS_COLLECTION
        self._client: Optional[MongoClient] = None
        self._collection: Optional[Collection] = coll

    def _coll(self) -> Collection:
        if self._collection is not None:
            return self._collection
        if not self._client:
            self._client = MongoClient(self.conn_str, serverSelectionTimeoutMS=10000)
        coll = self._client[self.db_name][self.collection]
        try:
            coll.create_index([("tenant_id", ASCENDING), ("environment", ASCENDING)], unique=True)
        except PyMongoError as e:
            logger.warning(f"⚠️ Could not create tenant settings index: {e}")
        self._collection = coll
        return coll

    @staticmethod
    def _to_model(doc: dict) -> TenantFbrSettings:
        seller = doc.get("seller")
        return TenantFbrSettings(
            tenant_id=doc["tenant_id"],
            environment=FbrEnvironment(doc.get("environment") or FbrEnvironment.SANDBOX.value),
            fbr_base_url=doc.get("fbr_base_url") or None,
            fbr_token=doc.get("fbr_token") or None,
            seller=SellerInfo(**seller) if isinstance(seller, dict) else None,
            is_active=doc.get("is_active", True),
            updated_at=doc.get("updated_at") or datetime.utcnow(),
        )

    def get_tenant_fbr_settings(self, tenant_id, environment):
        doc = self._coll().find_one({
            "tenant_id": tenant_id,
            "environment": FbrEnvironment(environment).value,
            "is_active": True,
        })
        return self._to_model(doc) if doc else None

    def save_tenant_fbr_settings(self, tenant_settings):
        now = datetime.utcnow()
        payload = {
            "tenant_id": tenant_settings.tenant_id,
            "environment": tenant_settings.environment.value,
            "fbr_base_url": tenant_settings.fbr_base_url,
            "fbr_token": tenant_settings.token_value(),
            "seller": tenant_settings.seller.model_dump() if tenant_settings.seller else None,
            "is_active": tenant_settings.is_active,
            "updated_at": now,
        }
        self._coll().update_one(
            {"tenant_id": tenant_settings.tenant_id, "environment": tenant_settings.environment.value},
            {"$set": payload, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )
        logger.info(
            f"💾 FBR {tenant_settings.environment.value} settings saved for tenant {tenant_settings.tenant_id}"
        )
        return tenant_settings.model_copy(update={"updated_at": now})

    def list_tenant_fbr_settings(self, tenant_id):
        cursor = self._coll().find({"tenant_id": tenant_id, "is_active": True}).sort("environment", ASCENDING)
        return [self._to_model(doc) for doc in cursor]
