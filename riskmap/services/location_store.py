"""
location_store.py — Process-wide holder for the user's NamedLocation.

Architecture decision: one LocationStore instance shared by the root
bootstrap and every screen session, replacing ambient globals. Writers are
LocationResolver (coordinate, then name) and MapConfigProvider (name from the
config service). Everyone else reads `store.location` or subscribes.

Generations
───────────
Every resolution pass starts with begin_generation() and tags its writes with
the id it got back. A write whose generation is no longer current is dropped,
so a slow pass that was overtaken (a second initializer started, or the screen
that launched it closed and called supersede()) can never overwrite newer
state. Nothing here blocks; the event loop is single-threaded.

USAGE
─────
    from riskmap.services.location_store import location_store

    unsubscribe = location_store.subscribe(lambda update: print(update.kind))
    gen = location_store.begin_generation()
    location_store.publish_coordinate(Coordinate(latitude=1, longitude=2), gen)
    location_store.publish_name("Somewhere", gen)
    unsubscribe()
"""

import logging
from dataclasses import dataclass
from typing import Callable, Literal

from riskmap.models.location import Coordinate, NamedLocation

logger = logging.getLogger(__name__)

UpdateKind = Literal["coordinate", "name"]


@dataclass(frozen=True)
class LocationUpdate:
    kind: UpdateKind
    location: NamedLocation


Subscriber = Callable[[LocationUpdate], None]


class LocationStore:
    def __init__(self) -> None:
        self._location = NamedLocation()
        self._generation = 0
        self._subscribers: list[Subscriber] = []

    # ── Reads ────────────────────────────────────────────────────────────────

    @property
    def location(self) -> NamedLocation:
        # Hand out copies; the store is the only place state changes.
        return self._location.model_copy()

    @property
    def coordinate(self) -> Coordinate | None:
        return self._location.coordinate

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ── Generations ──────────────────────────────────────────────────────────

    def begin_generation(self) -> int:
        self._generation += 1
        return self._generation

    def supersede(self) -> None:
        """Invalidate any pass in flight without starting a new one."""
        self._generation += 1

    # ── Writes ───────────────────────────────────────────────────────────────

    def publish_coordinate(self, coordinate: Coordinate, generation: int) -> bool:
        if not self._accept(generation, "coordinate"):
            return False
        changed = self._location.coordinate != coordinate
        update = {"latitude": coordinate.latitude, "longitude": coordinate.longitude}
        if changed:
            # A name belongs to the coordinate it was resolved for.
            update["name"] = None
        self._location = self._location.model_copy(update=update)
        self._notify("coordinate")
        return True

    def publish_name(self, name: str, generation: int) -> bool:
        if not self._accept(generation, "name"):
            return False
        self._location = self._location.model_copy(update={"name": name})
        self._notify("name")
        return True

    def publish_configured_name(self, coordinate: Coordinate, name: str) -> bool:
        """
        Apply a name the map configuration service returned for `coordinate`.

        Only names the coordinate the store currently holds; if the location
        has moved (or was never set) the name is dropped. Never writes a
        coordinate.
        """
        current = self._location.coordinate
        if current is None or current != coordinate:
            logger.debug(
                "Discarding config name for %s; store is at %s",
                coordinate.as_pair(), current.as_pair() if current else None,
            )
            return False
        self._location = self._location.model_copy(update={"name": name})
        self._notify("name")
        return True

    def reset(self) -> None:
        """Forget everything (app restart). Subscribers are kept."""
        self._location = NamedLocation()
        self._generation += 1

    # ── Subscriptions ────────────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _accept(self, generation: int, kind: UpdateKind) -> bool:
        if generation != self._generation:
            logger.debug(
                "Discarding stale %s update (generation %d, current %d)",
                kind, generation, self._generation,
            )
            return False
        return True

    def _notify(self, kind: UpdateKind) -> None:
        update = LocationUpdate(kind=kind, location=self.location)
        for callback in list(self._subscribers):
            try:
                callback(update)
            except Exception:
                logger.exception("Location subscriber failed on %s update", kind)


# Module-level singleton — the one NamedLocation the whole process shares
location_store = LocationStore()
