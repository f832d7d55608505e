"""Tests for client projections and the background sync task.

Tests cover:
    - Last-issued-wins: a superseded fetch is discarded
    - Scope routing through ProjectionSet
    - ProjectionSync reacting to committed service writes
"""

import asyncio

import pytest

from blurranker.errors import PersistenceError
from blurranker.models.common import ChangeOperation, EntityType
from blurranker.models.event import ChangeEvent
from blurranker.services.projection import Projection, ProjectionSet, ProjectionSync


class _ScriptedLoader:
    """Loader whose calls complete only when the test releases them."""

    def __init__(self):
        self.calls: list[asyncio.Future] = []
        self.scopes: list = []

    async def __call__(self, scope):
        future = asyncio.get_running_loop().create_future()
        self.calls.append(future)
        self.scopes.append(scope)
        return await future


async def _wait_for(predicate, timeout=1.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

class TestProjection:

    @pytest.mark.asyncio
    async def test_reconcile_stores_snapshot(self):
        async def loader(scope):
            return {"scope": scope}

        view = Projection(loader, scope="s1")
        assert not view.loaded
        assert await view.reconcile() == {"scope": "s1"}
        assert view.snapshot == {"scope": "s1"}
        assert view.loaded

    @pytest.mark.asyncio
    async def test_superseded_fetch_is_discarded(self):
        loader = _ScriptedLoader()
        view = Projection(loader, scope="s1")

        first = asyncio.create_task(view.reconcile())
        await _wait_for(lambda: len(loader.calls) == 1)
        second = asyncio.create_task(view.reconcile())
        await _wait_for(lambda: len(loader.calls) == 2)

        # The newer fetch lands first, then the stale one completes
        loader.calls[1].set_result("new")
        assert await second == "new"
        loader.calls[0].set_result("old")
        await first

        assert view.snapshot == "new"
        assert view.discarded == 1

    @pytest.mark.asyncio
    async def test_older_fetch_completing_first_is_still_discarded(self):
        loader = _ScriptedLoader()
        view = Projection(loader)

        first = asyncio.create_task(view.reconcile())
        await _wait_for(lambda: len(loader.calls) == 1)
        second = asyncio.create_task(view.reconcile())
        await _wait_for(lambda: len(loader.calls) == 2)

        loader.calls[0].set_result("old")
        await first
        assert view.snapshot is None

        loader.calls[1].set_result("new")
        await second
        assert view.snapshot == "new"

    @pytest.mark.asyncio
    async def test_unrelated_scope_is_ignored(self):
        calls = []

        async def loader(scope):
            calls.append(scope)
            return len(calls)

        view = Projection(loader, scope="s1")
        await view.reconcile("s2")
        assert calls == []

        await view.reconcile(None)
        await view.reconcile("s1")
        assert calls == ["s1", "s1"]

    @pytest.mark.asyncio
    async def test_loader_error_keeps_previous_snapshot(self):
        results = iter(["first"])

        async def loader(scope):
            try:
                return next(results)
            except StopIteration:
                raise PersistenceError("storage down")

        view = Projection(loader)
        await view.reconcile()
        with pytest.raises(PersistenceError):
            await view.reconcile()
        assert view.snapshot == "first"


class TestProjectionSet:

    @pytest.mark.asyncio
    async def test_routes_by_scope(self):
        calls = []

        async def loader(scope):
            calls.append(scope)
            return scope

        views = ProjectionSet(loader)
        views.view("s1")
        views.view("s2")

        await views.reconcile("s1")
        assert calls == ["s1"]

        await views.reconcile(None)
        assert sorted(calls) == ["s1", "s1", "s2"]
        assert views.view("s2").snapshot == "s2"

    def test_view_is_cached_per_scope(self):
        async def loader(scope):
            return scope

        views = ProjectionSet(loader)
        assert views.view("s1") is views.view("s1")
        views.drop("s1")
        assert views.scopes() == []


# ---------------------------------------------------------------------------
# ProjectionSync
# ---------------------------------------------------------------------------

class TestProjectionSync:

    @pytest.mark.asyncio
    async def test_refreshes_view_after_service_write(
        self, feed, session_service, game_service, session
    ):
        async def loader(scope):
            return await game_service.list_session_games(scope)

        views = ProjectionSet(loader, name="games")
        view = views.view(session.id)
        await view.reconcile()
        assert view.snapshot == []

        sync = ProjectionSync(feed, views, [EntityType.GAME], scope=session.id)
        sync.start()
        assert sync.running

        game = await game_service.create_game(session.id, "alice")
        await _wait_for(lambda: view.snapshot and len(view.snapshot) == 1)
        assert view.snapshot[0].game.id == game.id

        await sync.stop()
        assert not sync.running

    @pytest.mark.asyncio
    async def test_queued_events_are_coalesced(self, feed):
        calls = []

        async def loader(scope):
            calls.append(scope)
            return len(calls)

        views = ProjectionSet(loader)
        views.view("s1")
        sync = ProjectionSync(feed, views, [EntityType.DEBT])

        # Queue several events before the loop gets to run
        sync.start()
        for _ in range(5):
            feed.publish(
                ChangeEvent(entity=EntityType.DEBT, operation=ChangeOperation.UPDATE, scope="s1")
            )

        await _wait_for(lambda: sync.batches >= 1)
        await sync.stop()
        assert calls == ["s1"]

    @pytest.mark.asyncio
    async def test_reconcile_errors_do_not_stop_the_loop(self, feed):
        attempts = []

        async def loader(scope):
            attempts.append(scope)
            if len(attempts) == 1:
                raise PersistenceError("transient outage")
            return "ok"

        view = Projection(loader, scope="s1")
        sync = ProjectionSync(feed, view, [EntityType.GAME], scope="s1")
        sync.start()

        event = ChangeEvent(entity=EntityType.GAME, operation=ChangeOperation.UPDATE, scope="s1")
        feed.publish(event)
        await _wait_for(lambda: len(attempts) == 1)
        await asyncio.sleep(0.02)
        feed.publish(event)
        await _wait_for(lambda: view.snapshot == "ok")

        assert sync.running
        await sync.stop()

    @pytest.mark.asyncio
    async def test_unexpected_errors_do_not_stop_the_loop(self, feed):
        calls = []

        class _FlakyTarget:
            async def reconcile(self, scope):
                calls.append(scope)
                if len(calls) == 1:
                    raise RuntimeError("loader bug")

        sync = ProjectionSync(feed, _FlakyTarget(), [EntityType.GAME], scope="s1")
        sync.start()

        event = ChangeEvent(entity=EntityType.GAME, operation=ChangeOperation.UPDATE, scope="s1")
        feed.publish(event)
        await _wait_for(lambda: len(calls) == 1)
        await asyncio.sleep(0.02)
        assert sync.running

        feed.publish(event)
        await _wait_for(lambda: len(calls) == 2)
        await _wait_for(lambda: sync.batches == 1)

        assert sync.running
        await sync.stop()

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_subscription(self, feed):
        async def loader(scope):
            return None

        sync = ProjectionSync(feed, Projection(loader), [EntityType.GAME])
        sync.start()
        sync.start()
        assert feed.subscriber_count == 1
        await sync.stop()
        assert feed.subscriber_count == 0
