import asyncio

import pytest

from discovery_fakes import FakeCurrency, FakeEntitlements, FakeSource
from gymbros.domain.discovery.exceptions import (
	ConcurrentCommitError,
	NothingToUndoError,
	RekindleFundsError,
	SuperlikeFundsError,
)
from gymbros.domain.discovery.feed import DiscoveryFeedController
from gymbros.domain.discovery.ledger import InteractionLedger
from gymbros.domain.discovery.outcomes import CommitGate, SwipeOutcomeProcessor
from gymbros.domain.discovery.rekindle import RekindleSlot, RekindleUndo
from gymbros.domain.discovery.schemas import SwipeDirection


async def wire(catalogue, clock, *, balance=0, premium=False):
	source = FakeSource(catalogue)
	currency = FakeCurrency(balance)
	entitlements = FakeEntitlements(premium)
	feed = DiscoveryFeedController(source, page_size=10, prefetch_remaining=2, rank_batches=False, clock=clock)
	await feed.load_initial()
	slot = RekindleSlot()
	gate = CommitGate()
	processor = SwipeOutcomeProcessor(
		actor_id="viewer",
		feed=feed,
		ledger=InteractionLedger(),
		source=source,
		currency=currency,
		entitlements=entitlements,
		slot=slot,
		gate=gate,
		superlike_cost=20,
	)
	rekindle = RekindleUndo(feed=feed, slot=slot, currency=currency, entitlements=entitlements, gate=gate, cost=10)
	return feed, processor, rekindle, currency, source


@pytest.mark.asyncio
async def test_undo_without_history(catalogue, clock):
	_, _, rekindle, currency, _ = await wire(catalogue, clock, balance=100)

	with pytest.raises(NothingToUndoError):
		await rekindle.undo()
	assert currency.debits == []


@pytest.mark.asyncio
async def test_undo_restores_last_profile_as_active(catalogue, clock):
	feed, processor, rekindle, currency, _ = await wire(catalogue, clock, balance=100)
	await processor.commit(SwipeDirection.LEFT)
	await processor.commit(SwipeDirection.RIGHT)
	assert feed.active_candidate().id == "p3"

	result = await rekindle.undo()

	assert result.restored is True
	assert result.profile.id == "p2"
	assert result.charged == 10
	assert currency.debits == [(10, "rekindle")]
	assert feed.active_candidate().id == "p2"
	# p3 follows the restored card again
	assert [p.id for p in feed.queue[feed.cursor:feed.cursor + 2]] == ["p2", "p3"]


@pytest.mark.asyncio
async def test_second_undo_raises(catalogue, clock):
	_, processor, rekindle, currency, _ = await wire(catalogue, clock, balance=100)
	await processor.commit(SwipeDirection.RIGHT)

	await rekindle.undo()
	with pytest.raises(NothingToUndoError):
		await rekindle.undo()

	assert currency.debits == [(10, "rekindle")]


@pytest.mark.asyncio
async def test_only_latest_decision_can_be_rekindled(catalogue, clock):
	_, processor, rekindle, _, _ = await wire(catalogue, clock, premium=True)
	await processor.commit(SwipeDirection.RIGHT)
	await processor.commit(SwipeDirection.LEFT)

	result = await rekindle.undo()

	assert result.profile.id == "p2"
	with pytest.raises(NothingToUndoError):
		await rekindle.undo()


@pytest.mark.asyncio
async def test_rekindle_funds_error_is_distinct_and_keeps_slot(catalogue, clock):
	feed, processor, rekindle, _, _ = await wire(catalogue, clock, balance=5)
	await processor.commit(SwipeDirection.LEFT)

	with pytest.raises(RekindleFundsError) as exc_info:
		await rekindle.undo()

	assert not isinstance(exc_info.value, SuperlikeFundsError)
	assert exc_info.value.reason == "rekindle_insufficient_funds"
	assert "Rekindle" in exc_info.value.message
	assert feed.active_candidate().id == "p2"
	assert rekindle.slot.peek().profile.id == "p1"


@pytest.mark.asyncio
async def test_premium_rekindle_is_free(catalogue, clock):
	feed, processor, rekindle, currency, _ = await wire(catalogue, clock, premium=True)
	await processor.commit(SwipeDirection.RIGHT)

	result = await rekindle.undo()

	assert result.charged == 0
	assert currency.debits == []
	assert feed.active_candidate().id == "p1"


@pytest.mark.asyncio
async def test_undo_rejected_while_commit_in_flight(catalogue, clock):
	_, processor, rekindle, _, source = await wire(catalogue, clock, premium=True)
	await processor.commit(SwipeDirection.RIGHT)
	source.record_hold = asyncio.Event()

	pending = asyncio.create_task(processor.commit(SwipeDirection.LEFT))
	for _ in range(3):
		await asyncio.sleep(0)

	with pytest.raises(ConcurrentCommitError):
		await rekindle.undo()

	source.record_hold.set()
	await pending
	assert (await rekindle.undo()).profile.id == "p2"


@pytest.mark.asyncio
async def test_commit_after_undo_decides_restored_card(catalogue, clock):
	feed, processor, rekindle, _, source = await wire(catalogue, clock, premium=True)
	await processor.commit(SwipeDirection.LEFT)
	await rekindle.undo()

	result = await processor.commit(SwipeDirection.RIGHT)

	assert result.decision.candidate_id == "p1"
	assert feed.active_candidate().id == "p2"
	assert [entry["target_id"] for entry in source.recorded] == ["p1", "p1"]


@pytest.mark.asyncio
async def test_undo_charges_nothing_while_feed_shows_an_error(catalogue, clock):
	feed, processor, rekindle, currency, source = await wire(catalogue, clock, balance=100)
	await processor.commit(SwipeDirection.LEFT)
	source.fail_fetch = True
	await feed.refresh()
	assert feed.has_network_error()

	with pytest.raises(NothingToUndoError):
		await rekindle.undo()
	assert currency.debits == []
	assert currency.balance == 100


@pytest.mark.asyncio
async def test_undo_drops_entry_from_a_replaced_queue(catalogue, clock):
	feed, processor, rekindle, currency, _ = await wire(catalogue, clock, balance=100)
	await processor.commit(SwipeDirection.RIGHT)
	await feed.refresh()
	assert rekindle.available() is False

	with pytest.raises(NothingToUndoError):
		await rekindle.undo()
	assert currency.debits == []
	assert rekindle.slot.peek() is None
	assert feed.active_candidate().id == "p1"
