from dataclasses import replace

import pytest

from storefront.db import gateway
from fakes import ANON_KEY, FakeSupabase


@pytest.fixture()
def backend(monkeypatch):
    """Fake Supabase behind every client the gateway builds."""
    fake = FakeSupabase()

    async def _create_client(url, key, options=None):
        return fake.client(key, options)

    monkeypatch.setattr(
        gateway, "settings", replace(gateway.settings, supabase_url="https://db.example", supabase_key=ANON_KEY)
    )
    monkeypatch.setattr(gateway, "acreate_client", _create_client)
    monkeypatch.setattr(gateway, "_client", None)
    return fake


@pytest.fixture()
def product_rows(backend):
    backend.tables["products"] = [
        {"id": "p1", "name": "Tee", "price": 20.0, "stock": 5, "is_active": True,
         "sizes": ["S", "M"], "colors": ["black"], "image_url": "https://img/p1.png",
         "description": "Cotton tee", "category": "shirts", "created_at": "2026-01-02"},
        {"id": "p2", "name": "Cap", "price": 12.5, "stock": 0, "is_active": True,
         "sizes": [], "colors": [], "image_url": "", "description": "", "category": "hats",
         "created_at": "2026-01-03"},
        {"id": "p3", "name": "Old boots", "price": 80.0, "stock": 1, "is_active": False,
         "sizes": [], "colors": [], "image_url": "", "description": "", "category": "shoes",
         "created_at": "2026-01-01"},
    ]
    return backend.tables["products"]
