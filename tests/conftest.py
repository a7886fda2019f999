import asyncio

import pytest

from crm_adapter.store import InMemoryStore, StoreError

HOSPITAL = "hosp-test"


class RecordingStore(InMemoryStore):
    """InMemoryStore that remembers every lookup and insert, in order."""

    def __init__(self, tables=None):
        super().__init__(tables)
        self.lookups = []
        self.inserts = []

    async def find_one(self, table, **filters):
        self.lookups.append((table, filters))
        return await super().find_one(table, **filters)

    async def insert(self, table, record):
        row = await super().insert(table, record)
        self.inserts.append(table)
        return row


class FailingInsertStore(RecordingStore):
    def __init__(self, failing_table, tables=None):
        super().__init__(tables)
        self.failing_table = failing_table

    async def insert(self, table, record):
        if table == self.failing_table:
            raise StoreError("connection reset by peer")
        return await super().insert(table, record)


class SlowStore(InMemoryStore):
    async def find_one(self, table, **filters):
        await asyncio.sleep(1)
        return await super().find_one(table, **filters)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def seeded_store():
    return RecordingStore({
        "patients": [{
            "id": "pat-row-1",
            "patient_id": "PAT2026010007",
            "first_name": "Ravi",
            "last_name": "Kumar",
            "phone": "9829000001",
            "email": "ravi@example.com",
            "gender": "M",
            "hospital_id": HOSPITAL,
            "is_active": True,
            "is_confirmed": True,
        }],
        "doctors": [{
            "id": "doc-row-1",
            "name": "Dr. Alice Smith",
            "department": "Cardiology",
            "specialization": "Cardiology",
            "fee": 800.0,
            "hospital_id": HOSPITAL,
            "is_active": True,
        }],
    })
