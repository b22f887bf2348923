from __future__ import annotations

from typing import Any, Dict, List

import pytest

from fbr_invoicing.models.tenant import FbrEnvironment, SellerInfo, TenantFbrSettings
from fbr_invoicing.repositories.tenant_settings_repository import (
    InMemoryTenantSettingsRepository,
    MongoTenantSettingsRepository,
)


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in query.items())


class FakeCursor(list):
    def sort(self, key, direction=1):
        return FakeCursor(sorted(self, key=lambda d: d.get(key), reverse=direction < 0))


class FakeCollection:
    """Just enough of a pymongo Collection for the repository."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []

    def find_one(self, query):
        return next((dict(d) for d in self.docs if _matches(d, query)), None)

    def find(self, query):
        return FakeCursor(dict(d) for d in self.docs if _matches(d, query))

    def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update.get("$set", {}))
                return
        if upsert:
            doc = dict(query)
            doc.update(update.get("$setOnInsert", {}))
            doc.update(update.get("$set", {}))
            self.docs.append(doc)


@pytest.fixture(params=["memory", "mongo"])
def repo(request):
    if request.param == "memory":
        return InMemoryTenantSettingsRepository()
    return MongoTenantSettingsRepository(coll=FakeCollection())


def _settings(environment=FbrEnvironment.SANDBOX, **fields) -> TenantFbrSettings:
    values = dict(tenant_id="t1", environment=environment, fbr_base_url="https://gw.example/di", fbr_token="tok")
    values.update(fields)
    return TenantFbrSettings(**values)


def test_save_and_get_per_environment(repo):
    repo.save_tenant_fbr_settings(_settings(fbr_token="sandbox-token"))
    repo.save_tenant_fbr_settings(_settings(FbrEnvironment.PRODUCTION, fbr_token="prod-token"))

    sandbox = repo.get_tenant_fbr_settings("t1", FbrEnvironment.SANDBOX)
    production = repo.get_tenant_fbr_settings("t1", FbrEnvironment.PRODUCTION)
    assert sandbox.token_value() == "sandbox-token"
    assert production.token_value() == "prod-token"
    assert repo.get_tenant_fbr_settings("t2", FbrEnvironment.SANDBOX) is None


def test_save_is_an_upsert(repo):
    repo.save_tenant_fbr_settings(_settings(fbr_token="old"))
    repo.save_tenant_fbr_settings(_settings(fbr_token="new"))
    stored = repo.list_tenant_fbr_settings("t1")
    assert len(stored) == 1
    assert stored[0].token_value() == "new"


def test_list_is_scoped_to_tenant_and_ordered(repo):
    repo.save_tenant_fbr_settings(_settings(FbrEnvironment.SANDBOX))
    repo.save_tenant_fbr_settings(_settings(FbrEnvironment.PRODUCTION))
    repo.save_tenant_fbr_settings(_settings(tenant_id="t2"))

    environments = [s.environment for s in repo.list_tenant_fbr_settings("t1")]
    assert environments == [FbrEnvironment.PRODUCTION, FbrEnvironment.SANDBOX]


def test_inactive_settings_are_not_returned(repo):
    repo.save_tenant_fbr_settings(_settings(is_active=False))
    assert repo.get_tenant_fbr_settings("t1", FbrEnvironment.SANDBOX) is None


def test_seller_round_trips(repo):
    seller = SellerInfo(ntncnic="8885801", business_name="Acme Traders", province="Sindh", address="Karachi")
    repo.save_tenant_fbr_settings(_settings(seller=seller))
    stored = repo.get_tenant_fbr_settings("t1", "sandbox")
    assert stored.seller == seller


def test_mongo_stores_environment_as_plain_value():
    coll = FakeCollection()
    MongoTenantSettingsRepository(coll=coll).save_tenant_fbr_settings(_settings(FbrEnvironment.PRODUCTION))
    doc = coll.docs[0]
    assert doc["environment"] == "production"
    assert doc["fbr_token"] == "tok"
    assert "created_at" in doc
