import shutil
from pathlib import Path

import pytest

from backend import session, storage

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data(monkeypatch):
    """Wipe and re-init data-tests/ and drop the live world before every test."""
    monkeypatch.delenv("ASHBOUND_SEED", raising=False)
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    storage.init_storage(TEST_DATA_DIR)
    session.set_world(None)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it
