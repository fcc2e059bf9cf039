from datetime import datetime, timedelta

import pytest

from donorsync.db import get_conn
from donorsync.inventory import BloodUnit
from donorsync.migrate_sqlite import ensure_schema

NOW = datetime(2024, 3, 15, 12, 0, 0)


def make_unit(unit_id, blood_type="O-", days=20, test_result="passed",
              availability="available", **kwargs):
    """Unit whose expiration date is exactly ``days`` days after NOW."""
    expires = NOW + timedelta(days=days)
    return BloodUnit(id=unit_id, blood_type=blood_type,
                     collection_date=expires - timedelta(days=42), expiration_date=expires,
                     test_result=test_result, availability=availability, **kwargs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def conn():
    c = get_conn(":memory:")
    ensure_schema(c)
    yield c
    c.close()
