"""Client-side projections kept fresh from the change feed.

A projection is a locally cached, eventually-consistent view. It is
refreshed only by re-fetching through its loader, never by reading event
payloads. ``reconcile(scope)`` is the single entry point; the transport
(here ``ProjectionSync``) only decides when to call it.

When fetches overlap, the last one issued wins: a fetch that completes
after a newer fetch was started is discarded.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from blurranker.dal.change_feed import ChangeFeed, Subscription
from blurranker.errors import BlurRankerError
from blurranker.models.common import EntityType

logger = logging.getLogger("blurranker.services.projection")

T = TypeVar("T")

Loader = Callable[[Optional[str]], Awaitable[T]]


class Projection(Generic[T]):
    """A cached view over one scope (a session id, or None for global)."""

    def __init__(self, loader: Loader, scope: Optional[str] = None, name: str = "view") -> None:
        self._loader = loader
        self.scope = scope
        self.name = name
        self.snapshot: Optional[T] = None
        self._issued = 0
        self._applied = 0
        self.discarded = 0

    @property
    def loaded(self) -> bool:
        return self._applied > 0

    def concerns(self, scope: Optional[str]) -> bool:
        return scope is None or self.scope is None or scope == self.scope

    async def reconcile(self, scope: Optional[str] = None) -> Optional[T]:
        """Re-fetch the view if ``scope`` concerns it and return the snapshot.

        Loader errors propagate and leave the previous snapshot in place.
        """
        if not self.concerns(scope):
            return self.snapshot

        self._issued += 1
        ticket = self._issued
        result = await self._loader(self.scope)

        if ticket != self._issued:
            self.discarded += 1
            logger.debug(
                "Discarded superseded fetch %d of %s (latest=%d)",
                ticket, self.name, self._issued,
            )
            return self.snapshot

        self._applied = ticket
        self.snapshot = result
        return result


class ProjectionSet(Generic[T]):
    """Projections sharing one loader, created lazily per scope."""

    def __init__(self, loader: Loader, name: str = "views") -> None:
        self._loader = loader
        self.name = name
        self._views: dict[Optional[str], Projection[T]] = {}

    def view(self, scope: Optional[str] = None) -> Projection[T]:
        if scope not in self._views:
            self._views[scope] = Projection(
                self._loader, scope, name=f"{self.name}[{scope}]"
            )
        return self._views[scope]

    def scopes(self) -> list[Optional[str]]:
        return list(self._views)

    def drop(self, scope: Optional[str]) -> None:
        self._views.pop(scope, None)

    async def reconcile(self, scope: Optional[str] = None) -> None:
        """Refresh the views a change in ``scope`` may affect.

        ``None`` means the change could touch anything, so every view is
        refreshed.
        """
        if scope is None:
            await self.reconcile_all()
            return
        for view in list(self._views.values()):
            if view.concerns(scope):
                await view.reconcile(scope)

    async def reconcile_all(self) -> None:
        for view in list(self._views.values()):
            await view.reconcile()


class ProjectionSync:
    """Background task that calls ``target.reconcile(scope)`` on change events.

    Events already queued when a batch starts are coalesced: each distinct
    scope is reconciled once, and an unscoped event reconciles everything
    once.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        target,
        entities: Iterable[EntityType],
        scope: Optional[str] = None,
    ) -> None:
        self._feed = feed
        self._target = target
        self._entities = frozenset(entities)
        self._scope = scope
        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None
        self.batches = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _apply(self, scopes: list[Optional[str]]) -> None:
        if None in scopes:
            await self._target.reconcile(None)
            return
        for scope in dict.fromkeys(scopes):
            await self._target.reconcile(scope)

    async def _sync_loop(self, subscription: Subscription) -> None:
        logger.info(
            "Projection sync started (entities=%s, scope=%s)",
            sorted(self._entities), self._scope,
        )
        while True:
            try:
                event = await subscription.get()
                if event is None:
                    break
                batch = [event, *subscription.drain_nowait()]
                await self._apply([e.scope for e in batch])
                self.batches += 1
            except asyncio.CancelledError:
                break
            except BlurRankerError as e:
                logger.error("Projection reconcile failed: %s", e.message)
            except Exception as e:
                logger.error("Error in projection sync loop: %s", str(e))
        logger.info("Projection sync stopped")

    def start(self) -> None:
        """Subscribe and start the background loop. Must run inside an event loop."""
        if self.running:
            logger.warning("Projection sync already running")
            return
        self._subscription = self._feed.subscribe(self._entities, self._scope)
        self._task = asyncio.create_task(self._sync_loop(self._subscription))

    async def stop(self) -> None:
        """Close the subscription and wait for the loop to finish."""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._task is not None:
            await self._task
            self._task = None
