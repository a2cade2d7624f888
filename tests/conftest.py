"""
Shared pytest fixtures: settings, a fake Cosmos account, and a provider wired to it.
"""

import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from icebreaker.core.config import Settings
from icebreaker.db.cosmos import CosmosConnection
from icebreaker.services.data_provider import BotDataProvider
from tests.fakes import DATABASE, FakeCosmosAccount, RecordingTelemetry


@pytest.fixture
def test_settings():
    return Settings(
        COSMOS_DB_ENDPOINT_URL="https://icebreaker-test.documents.azure.com:443/",
        COSMOS_DB_KEY="dGVzdC1rZXk=",
        COSMOS_DB_DATABASE_NAME=DATABASE,
        COSMOS_COLLECTION_PAIRS="pairs",
        COSMOS_COLLECTION_TEAMS="teams",
        COSMOS_COLLECTION_USERS="users",
    )


@pytest.fixture
def account():
    return FakeCosmosAccount()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def connection(test_settings, account, telemetry):
    return CosmosConnection(test_settings, telemetry=telemetry, client_factory=account)


@pytest.fixture
def provider(connection, telemetry):
    return BotDataProvider(connection, telemetry)
