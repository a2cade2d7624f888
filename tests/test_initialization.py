import asyncio
import threading

import pytest
from azure.cosmos.exceptions import CosmosHttpResponseError

from icebreaker.core.exceptions import DataStoreError, DataStoreInitializationError
from icebreaker.db.cosmos import CosmosConnection, PARTITION_KEY_PATH, is_shared_offer_disabled
from tests.fakes import DATABASE, FakeCosmosAccount, shared_offer_disabled_error


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_setup(connection, account):
    finished_after_setup = []

    async def caller():
        await connection.ensure_initialized()
        finished_after_setup.append(connection.is_initialized)

    await asyncio.gather(*(caller() for _ in range(20)))

    assert len(account.clients) == 1
    assert len(account.database_create_calls) == 1
    assert finished_after_setup == [True] * 20


@pytest.mark.asyncio
async def test_repeated_calls_do_not_repeat_setup(connection, account):
    await connection.ensure_initialized()
    await connection.ensure_initialized()
    await connection.ensure_initialized()

    assert len(account.clients) == 1
    assert len(account.databases[DATABASE].container_create_calls) == 3


@pytest.mark.asyncio
async def test_setup_creates_database_and_containers(connection, account, test_settings):
    await connection.ensure_initialized()

    assert account.clients[0].url == test_settings.COSMOS_DB_ENDPOINT_URL
    assert account.clients[0].credential == test_settings.COSMOS_DB_KEY
    assert account.database_create_calls == [{"id": DATABASE, "offer_throughput": 400}]

    calls = account.databases[DATABASE].container_create_calls
    assert [call["id"] for call in calls] == ["pairs", "teams", "users"]
    for call in calls:
        assert call["partition_key"].path == PARTITION_KEY_PATH
        assert call["offer_throughput"] is None

    assert connection.uses_shared_throughput is True
    assert connection.pairs.id == "pairs"
    assert connection.teams.id == "teams"
    assert connection.users.id == "users"


@pytest.mark.asyncio
async def test_shared_offer_disabled_falls_back_to_container_throughput(test_settings, telemetry):
    account = FakeCosmosAccount(shared_offer_disabled=True)
    connection = CosmosConnection(test_settings, telemetry=telemetry, client_factory=account)

    await asyncio.gather(*(connection.ensure_initialized() for _ in range(5)))

    assert account.database_create_calls == [
        {"id": DATABASE, "offer_throughput": 400},
        {"id": DATABASE, "offer_throughput": None},
    ]
    calls = account.databases[DATABASE].container_create_calls
    assert [call["id"] for call in calls] == ["pairs", "teams", "users"]
    assert all(call["offer_throughput"] == 400 for call in calls)
    assert connection.uses_shared_throughput is False

    fallback_traces = [message for message, _ in telemetry.traces if "shared offer is disabled" in message]
    assert len(fallback_traces) == 1


@pytest.mark.asyncio
async def test_other_database_errors_fail_every_waiter(connection, account, telemetry):
    account.database_error = CosmosHttpResponseError(status_code=401, message="Unauthorized")

    results = await asyncio.gather(
        *(connection.ensure_initialized() for _ in range(5)),
        return_exceptions=True,
    )

    assert all(isinstance(result, DataStoreInitializationError) for result in results)
    assert all(result is results[0] for result in results)
    assert results[0].__cause__ is account.database_error
    assert len(account.database_create_calls) == 1
    assert account.clients[0].closed
    assert not connection.is_initialized
    assert telemetry.exceptions[0][0] is account.database_error


@pytest.mark.asyncio
async def test_failed_setup_is_not_retried_until_closed(connection, account):
    account.database_error = CosmosHttpResponseError(status_code=503, message="Service unavailable")

    with pytest.raises(DataStoreInitializationError):
        await connection.ensure_initialized()
    with pytest.raises(DataStoreInitializationError):
        await connection.ensure_initialized()
    assert len(account.database_create_calls) == 1

    account.database_error = None
    await connection.close()
    await connection.ensure_initialized()

    assert len(account.database_create_calls) == 2
    assert connection.is_initialized


@pytest.mark.asyncio
async def test_container_failure_is_fatal(connection, account):
    account.failing_containers.add("teams")

    with pytest.raises(DataStoreInitializationError):
        await connection.ensure_initialized()

    with pytest.raises(DataStoreError):
        connection.teams


@pytest.mark.asyncio
async def test_shared_offer_fallback_only_for_that_error(test_settings):
    account = FakeCosmosAccount()
    account.database_error = CosmosHttpResponseError(status_code=400, message="Request rate is large")
    connection = CosmosConnection(test_settings, client_factory=account)

    with pytest.raises(DataStoreInitializationError):
        await connection.ensure_initialized()
    assert len(account.database_create_calls) == 1


def test_shared_offer_detection():
    assert is_shared_offer_disabled(shared_offer_disabled_error())
    assert not is_shared_offer_disabled(CosmosHttpResponseError(status_code=400, message="Bad request"))


def test_containers_unavailable_before_setup(connection):
    with pytest.raises(DataStoreError):
        connection.users


@pytest.mark.asyncio
async def test_missing_key_fails_setup(test_settings, account):
    settings_without_key = test_settings.model_copy(update={"COSMOS_DB_KEY": None})
    connection = CosmosConnection(settings_without_key, client_factory=account)

    with pytest.raises(DataStoreInitializationError):
        await connection.ensure_initialized()
    assert account.clients == []


@pytest.mark.asyncio
async def test_health_check(connection, account):
    assert await connection.check_health() is True

    account.unreachable = True
    assert await connection.check_health() is False


@pytest.mark.asyncio
async def test_close_releases_client(connection, account):
    await connection.ensure_initialized()
    await connection.close()

    assert account.clients[0].closed
    assert not connection.is_initialized
    assert connection.uses_shared_throughput is None


def run_on_threads(connection, count=4):
    barrier = threading.Barrier(count)
    errors = []

    def caller():
        barrier.wait()
        try:
            asyncio.run(connection.ensure_initialized())
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=caller) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return errors


def test_callers_on_separate_threads_share_one_setup(connection, account):
    errors = run_on_threads(connection)

    assert errors == []
    assert len(account.clients) == 1
    assert len(account.database_create_calls) == 1
    assert connection.is_initialized


def test_failed_setup_reaches_callers_on_every_thread(connection, account):
    account.database_error = CosmosHttpResponseError(status_code=401, message="Unauthorized")

    errors = run_on_threads(connection)

    assert len(errors) == 4
    assert isinstance(errors[0], DataStoreInitializationError)
    assert all(error is errors[0] for error in errors)
    assert len(account.database_create_calls) == 1


@pytest.mark.asyncio
async def test_close_during_setup_closes_the_client(connection, account):
    waiter = asyncio.ensure_future(connection.ensure_initialized())
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    await connection.close()

    with pytest.raises(DataStoreInitializationError):
        await waiter
    assert len(account.clients) == 1
    assert account.clients[0].closed
    assert not connection.is_initialized
