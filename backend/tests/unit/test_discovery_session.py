import pytest

from discovery_fakes import FakeCurrency, FakeEntitlements, FakeSource, RecordingNotifier, make_profile
from gymbros.domain.discovery import DiscoveryError, DiscoverySession, NothingToUndoError
from gymbros.domain.discovery.schemas import EmptyReason, SwipeDirection


def new_session(viewer, profiles, **kwargs):
	source = kwargs.pop("source", None) or FakeSource(profiles, matches=kwargs.pop("matches", ()))
	return DiscoverySession(
		viewer=viewer,
		source=source,
		currency=kwargs.pop("currency", None) or FakeCurrency(100),
		entitlements=FakeEntitlements(kwargs.pop("premium", False)),
		page_size=10,
		**kwargs,
	)


@pytest.mark.asyncio
async def test_swipe_through_a_session(viewer, catalogue):
	notifier = RecordingNotifier()
	session = new_session(viewer, catalogue, matches=("p2",), notifier=notifier)
	await session.start()

	assert session.active_candidate().id == "p1"
	assert session.active_breakdown().overall_score >= 50

	left = session.on_gesture([(-40, 0), (-160, 10)])
	await session.commit_decision(left)
	result = await session.commit_decision("right")

	assert result.matched is True
	assert [event.profile.id for event in session.matches] == ["p2"]
	assert notifier.events == session.matches
	assert session.can_rekindle()

	undone = await session.undo()
	assert undone.profile.id == "p2"
	assert session.active_candidate().id == "p2"
	assert not session.can_rekindle()

	await session.close()


@pytest.mark.asyncio
async def test_snap_back_gesture_commits_nothing(viewer, catalogue):
	session = new_session(viewer, catalogue)
	await session.start()

	outcome = session.on_gesture([(30, 0), (60, -10)])

	assert outcome.snap_back is True
	with pytest.raises(ValueError):
		await session.commit_decision(outcome)
	assert session.active_candidate().id == "p1"


@pytest.mark.asyncio
async def test_sessions_do_not_share_state(viewer, catalogue):
	first = new_session(viewer, catalogue)
	second = new_session(viewer, catalogue)
	await first.start()
	await second.start()

	await first.commit_decision(SwipeDirection.RIGHT)

	assert first.session_id != second.session_id
	assert first.can_rekindle()
	assert not second.can_rekindle()
	assert second.active_candidate().id == "p1"
	with pytest.raises(NothingToUndoError):
		await second.undo()


@pytest.mark.asyncio
async def test_empty_states_reach_the_shell(viewer):
	session = new_session(viewer, [])
	assert session.empty_state().reason is EmptyReason.LOADING

	await session.start()

	assert session.is_exhausted()
	assert session.empty_state().reason is EmptyReason.EXHAUSTED


@pytest.mark.asyncio
async def test_network_error_then_retry(viewer):
	source = FakeSource([make_profile("a")])
	source.fail_fetch = True
	session = new_session(viewer, [], source=source)

	await session.start()
	assert session.has_network_error()
	assert session.empty_state().action == "retry"

	source.fail_fetch = False
	await session.refresh()

	assert not session.has_network_error()
	assert session.active_candidate().id == "a"


@pytest.mark.asyncio
async def test_close_flushes_ledger_writes(viewer, catalogue):
	session = new_session(viewer, catalogue)
	await session.start()
	await session.commit_decision(SwipeDirection.LEFT)

	await session.close()

	dislikes = await session.ledger.list_by_actor("viewer", "dislike")
	assert [item.target_id for item in dislikes] == ["p1"]


@pytest.mark.asyncio
async def test_cursor_stays_in_bounds_across_interleaved_actions(viewer):
	session = new_session(viewer, [make_profile(f"p{i}") for i in range(1, 26)], premium=True)
	await session.start()

	steps = [
		lambda: session.commit_decision("right"),
		lambda: session.commit_decision("left"),
		session.undo,
		lambda: session.commit_decision("up"),
		session.load_more,
		session.refresh,
		session.undo,
		*[lambda: session.commit_decision("right")] * 8,
		session.undo,
		session.refresh,
		session.load_more,
	]
	errors = []
	for step in steps:
		try:
			await step()
		except DiscoveryError as exc:
			errors.append(exc)
		await session.feed.settle()
		assert 0 <= session.feed.cursor <= len(session.feed.queue)

	assert [type(exc) for exc in errors] == [NothingToUndoError]
	assert session.feed.cursor == 0
	assert len(session.feed.queue) == 20
	await session.close()
