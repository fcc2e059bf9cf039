import random
import sqlite3
import uuid
from collections import Counter
from datetime import timedelta

import pytest

from donorsync.blood_types import ALL_TYPES
from donorsync.demo import generate_requests, generate_units, seed
from donorsync.store import SqliteRequestStore, SqliteUnitStore

from conftest import NOW


def test_generated_units_cover_every_type():
    units = generate_units(NOW, random.Random(3))
    per_type = Counter(u.blood_type for u in units)
    assert set(per_type) == set(ALL_TYPES)
    assert all(15 <= n <= 45 for n in per_type.values())
    assert len({u.id for u in units}) == len(units)
    # collected at most 39 days ago
    assert all(u.expiration_date >= NOW + timedelta(days=3) for u in units)


def test_same_seed_same_data():
    assert generate_requests(NOW, random.Random(11)) == generate_requests(NOW, random.Random(11))


def test_seed_fills_the_database(conn):
    n = seed(conn, NOW, 5)
    assert len(SqliteUnitStore(conn).all()) == n
    assert len(SqliteRequestStore(conn).all()) == 20


def test_seeding_twice_appends_a_new_batch(conn):
    first = seed(conn, NOW, 5)
    second = seed(conn, NOW, 5)
    assert len(SqliteUnitStore(conn).all()) == first + second
    assert len(SqliteRequestStore(conn).all()) == 40


def test_seed_is_all_or_nothing(conn, monkeypatch):
    monkeypatch.setattr("donorsync.demo.uuid.uuid4", lambda: uuid.UUID(int=1))
    n = seed(conn, NOW, 5)
    with pytest.raises(sqlite3.IntegrityError):
        seed(conn, NOW, 6)
    assert len(SqliteUnitStore(conn).all()) == n
    assert len(SqliteRequestStore(conn).all()) == 20
