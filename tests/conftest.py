"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient

from repair_ledger.config import LedgerConfig, WarrantyOptions
from repair_ledger.compute.warranty import WarrantyEvaluator
from repair_ledger.db import LedgerDatabase
from repair_ledger.servers.api import create_app


@pytest.fixture
def settings():
    """Configuration with the stock warranty rules."""
    return LedgerConfig(warranty=WarrantyOptions(default_months=24, repair_extension_months=12))


@pytest.fixture
def evaluator(settings):
    return WarrantyEvaluator(settings.warranty)


@pytest.fixture
def database():
    """Fresh in-memory database with the schema created."""
    db = LedgerDatabase("sqlite://")
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def app(database, evaluator, settings):
    return create_app(database=database, evaluator=evaluator, settings=settings, diagnostics=True)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
