import pytest
from azure.cosmos.exceptions import CosmosHttpResponseError
from pydantic import ValidationError

from icebreaker.models.pair import PairInfo
from tests.fakes import DATABASE


@pytest.mark.asyncio
async def test_add_pair_then_history(provider):
    await provider.add_pair("29:alice", "29:bob", 3)

    history = await provider.get_pair_history()

    assert history.ok
    matching = [pair for pair in history.items if pair.users == {"29:alice", "29:bob"} and pair.iteration == 3]
    assert len(matching) == 1


@pytest.mark.asyncio
async def test_same_pair_twice_is_two_records(provider):
    first = await provider.add_pair("29:alice", "29:bob", 3)
    second = await provider.add_pair("29:alice", "29:bob", 3)

    history = await provider.get_pair_history()

    assert first.id != second.id
    assert len(history.items) == 2
    assert {pair.id for pair in history.items} == {first.id, second.id}


@pytest.mark.asyncio
async def test_pair_document_shape(provider, account):
    pair = await provider.add_pair("29:alice", "29:bob", 7)

    document = account.container(DATABASE, "pairs").documents[pair.id]
    assert document == {"id": pair.id, "user1Id": "29:alice", "user2Id": "29:bob", "iteration": 7}


@pytest.mark.asyncio
async def test_history_spans_partitions(provider):
    created = [await provider.add_pair(f"29:u{i}", f"29:v{i}", i % 2) for i in range(11)]

    history = await provider.get_pair_history()

    assert history.ok
    assert sorted(pair.id for pair in history.items) == sorted(pair.id for pair in created)


@pytest.mark.asyncio
async def test_empty_history(provider):
    history = await provider.get_pair_history()

    assert history.ok
    assert history.items == []


@pytest.mark.asyncio
async def test_history_failure_is_flagged(provider, account):
    for i in range(6):
        await provider.add_pair(f"29:u{i}", f"29:v{i}", 1)
    pairs = account.container(DATABASE, "pairs")
    pairs.scan_error = CosmosHttpResponseError(status_code=500, message="boom")
    pairs.scan_fail_after_pages = 1

    history = await provider.get_pair_history()

    assert not history.ok
    assert all(isinstance(pair, PairInfo) for pair in history.items)


@pytest.mark.asyncio
async def test_add_pair_failure_propagates(provider, account):
    await provider.ensure_initialized()
    account.container(DATABASE, "pairs").write_error = CosmosHttpResponseError(status_code=500, message="boom")

    with pytest.raises(CosmosHttpResponseError):
        await provider.add_pair("29:alice", "29:bob", 1)


def test_pair_is_immutable():
    pair = PairInfo(user1_id="29:alice", user2_id="29:bob", iteration=1)

    with pytest.raises(ValidationError):
        pair.iteration = 2
