"""
Tests for Request Sequencing

Tests covering:
1. Last request wins per key
2. Independent keys do not interfere
3. Resolved keys are forgotten
4. Listing queries through the lifecycle manager
"""

import asyncio

import pytest

from core.listings import (
    AuthProfile,
    ListingsContainer,
    Ok,
    PropertyFilters,
    RequestSequencer,
    StaticIdentityProvider,
)


async def delayed(value, delay):
    await asyncio.sleep(delay)
    return value


async def failing():
    raise ConnectionError("reset")


class CountingSequencer(RequestSequencer):
    def __init__(self):
        super().__init__()
        self.runs = 0

    async def run(self, key, call):
        self.runs += 1
        return await super().run(key, call)


class TestRequestSequencer:
    """Tests for stale response suppression."""

    async def test_single_request_is_delivered(self):
        sequencer = RequestSequencer()

        assert await sequencer.run("k", delayed("a", 0)) == "a"

    async def test_slow_older_response_is_dropped(self):
        """The first request resolves last and must not overwrite the second."""
        sequencer = RequestSequencer()

        older, newer = await asyncio.gather(
            sequencer.run("search", delayed("old", 0.05)),
            sequencer.run("search", delayed("new", 0)),
        )

        assert older is None
        assert newer == "new"

    async def test_keys_are_independent(self):
        sequencer = RequestSequencer()

        first, second = await asyncio.gather(
            sequencer.run("a", delayed(1, 0.02)),
            sequencer.run("b", delayed(2, 0)),
        )

        assert (first, second) == (1, 2)

    def test_issue_is_monotonic(self):
        sequencer = RequestSequencer()

        first = sequencer.issue("k")
        second = sequencer.issue("k")

        assert second > first
        assert sequencer.is_current("k", second)
        assert not sequencer.is_current("k", first)

    async def test_resolved_keys_are_forgotten(self):
        sequencer = RequestSequencer()

        await sequencer.run("a", delayed(1, 0))
        await asyncio.gather(
            sequencer.run("search", delayed("old", 0.02)),
            sequencer.run("search", delayed("new", 0)),
        )

        assert sequencer.in_flight == 0

    async def test_failed_call_releases_key(self):
        sequencer = RequestSequencer()

        with pytest.raises(ConnectionError):
            await sequencer.run("k", failing())

        assert sequencer.in_flight == 0


class TestListingChannel:
    """Tests for superseded listing queries."""

    async def test_sequential_queries_on_one_channel_all_deliver(self, agent):
        await agent.lifecycle.create({"title": "Casa"})

        first = await agent.lifecycle.list(PropertyFilters(), channel="grid")
        second = await agent.lifecycle.list(PropertyFilters(query="casa"), channel="grid")

        assert isinstance(first, Ok)
        assert second.value.total == 1

    async def test_list_without_channel_skips_sequencer(self, db, storage, config):
        sequencer = CountingSequencer()
        identity = StaticIdentityProvider(AuthProfile(kyc_status="verified", org_id="ORG-1"))
        container = ListingsContainer.in_memory(
            db, identity, storage, config=config, sequencer=sequencer
        )

        for _ in range(5):
            assert isinstance(await container.lifecycle.list(PropertyFilters()), Ok)
        await container.lifecycle.list(PropertyFilters(), channel="grid")

        assert sequencer.runs == 1
        assert sequencer.in_flight == 0
