from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from functools import partial

from geomerge.core.errors import CapabilityUnavailable
from geomerge.core.grid import Cell, CellDelta, CoordinateMapper, LatLng

logger = logging.getLogger(__name__)


DeltaListener = Callable[[CellDelta], None]
UnavailableListener = Callable[[CapabilityUnavailable], None]


class MovementKind(StrEnum):
    buttons = "buttons"
    geolocation = "geolocation"


class Direction(StrEnum):
    north = "north"
    south = "south"
    east = "east"
    west = "west"


# `i` follows latitude and `j` follows longitude.
DIRECTION_DELTAS: dict[Direction, CellDelta] = {
    Direction.north: CellDelta(1, 0),
    Direction.south: CellDelta(-1, 0),
    Direction.east: CellDelta(0, 1),
    Direction.west: CellDelta(0, -1),
}


class ButtonSource:
    """Four named trigger hooks, one per direction.

    Whatever drives the UI calls `press(direction)`; controllers attach/detach listeners.
    """

    def __init__(self) -> None:
        self._listeners: dict[Direction, list[Callable[[], None]]] = {d: [] for d in Direction}

    def attach(self, direction: Direction, listener: Callable[[], None]) -> None:
        self._listeners[direction].append(listener)

    def detach(self, direction: Direction, listener: Callable[[], None]) -> None:
        try:
            self._listeners[direction].remove(listener)
        except ValueError:
            pass

    def listener_count(self, direction: Direction | None = None) -> int:
        if direction is not None:
            return len(self._listeners[direction])
        return sum(len(ls) for ls in self._listeners.values())

    def press(self, direction: Direction) -> bool:
        """Fire the hook; returns False when nothing is listening."""

        listeners = list(self._listeners[direction])
        for listener in listeners:
            listener()
        return bool(listeners)


@dataclass(frozen=True, slots=True)
class PositionSample:
    latitude: float
    longitude: float
    accuracy: float | None = None

    @property
    def position(self) -> LatLng:
        return LatLng(self.latitude, self.longitude)


class LocationErrorKind(StrEnum):
    unavailable = "unavailable"
    denied = "denied"
    transient = "transient"


@dataclass(frozen=True, slots=True)
class LocationError:
    kind: LocationErrorKind
    message: str = ""

    @property
    def is_fatal(self) -> bool:
        return self.kind != LocationErrorKind.transient


SampleListener = Callable[[PositionSample], None]
ErrorListener = Callable[[LocationError], None]


class PositionSource:
    """Subscribe/unsubscribe stream of position samples plus an error channel.

    Samples are pushed in by the owner of the real capability (a browser posting
    `watchPosition` results, a GPS reader, a test).
    """

    def __init__(self, *, available: bool = True) -> None:
        self.available = available
        self._next_handle = 1
        self._subscribers: dict[int, tuple[SampleListener, ErrorListener]] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, on_sample: SampleListener, on_error: ErrorListener) -> int:
        if not self.available:
            raise CapabilityUnavailable("Geolocation is not available")
        handle = self._next_handle
        self._next_handle += 1
        self._subscribers[handle] = (on_sample, on_error)
        return handle

    def unsubscribe(self, handle: int) -> None:
        self._subscribers.pop(handle, None)

    def push(self, sample: PositionSample) -> int:
        subscribers = list(self._subscribers.values())
        for on_sample, _ in subscribers:
            on_sample(sample)
        return len(subscribers)

    def fail(self, error: LocationError) -> int:
        if error.is_fatal:
            self.available = False
        subscribers = list(self._subscribers.values())
        for _, on_error in subscribers:
            on_error(error)
        return len(subscribers)


class MovementController(ABC):
    """Start/stop capability that emits relative cell deltas.

    `stop()` must be idempotent and must prevent any further emission.
    """

    kind: MovementKind

    @property
    @abstractmethod
    def active(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError


class ButtonMovementController(MovementController):
    kind = MovementKind.buttons

    def __init__(self, *, source: ButtonSource, on_delta: DeltaListener) -> None:
        self._source = source
        self._on_delta = on_delta
        self._handlers: dict[Direction, Callable[[], None]] = {}

    @property
    def active(self) -> bool:
        return bool(self._handlers)

    def start(self) -> None:
        if self._handlers:
            return
        for direction in Direction:
            handler = partial(self._fire, direction)
            self._source.attach(direction, handler)
            self._handlers[direction] = handler

    def stop(self) -> None:
        for direction, handler in self._handlers.items():
            self._source.detach(direction, handler)
        self._handlers.clear()

    def _fire(self, direction: Direction) -> None:
        self._on_delta(DIRECTION_DELTAS[direction])


class GeolocationMovementController(MovementController):
    """Emits a delta only when the reported position crosses a cell boundary.

    The first sample after `start()` only calibrates the baseline cell.
    """

    kind = MovementKind.geolocation

    def __init__(
        self,
        *,
        source: PositionSource,
        mapper: CoordinateMapper,
        on_delta: DeltaListener,
        on_unavailable: UnavailableListener | None = None,
    ) -> None:
        self._source = source
        self._mapper = mapper
        self._on_delta = on_delta
        self._on_unavailable = on_unavailable
        self._handle: int | None = None
        self._baseline: Cell | None = None
        self._unavailable_reported = False

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def baseline(self) -> Cell | None:
        return self._baseline

    def start(self) -> None:
        if self._handle is not None:
            return
        self._baseline = None
        self._unavailable_reported = False
        try:
            self._handle = self._source.subscribe(self._handle_sample, self._handle_error)
        except CapabilityUnavailable as e:
            self._report_unavailable(e)

    def stop(self) -> None:
        if self._handle is not None:
            self._source.unsubscribe(self._handle)
        self._handle = None
        self._baseline = None

    def _handle_sample(self, sample: PositionSample) -> None:
        if self._handle is None:
            return
        cell = self._mapper.to_cell(sample.position)
        if self._baseline is None:
            logger.debug("geolocation calibrated at cell %s", cell.key)
            self._baseline = cell
            return
        delta = self._baseline.delta_to(cell)
        if delta.is_zero:
            return
        self._baseline = cell
        self._on_delta(delta)

    def _handle_error(self, error: LocationError) -> None:
        if not error.is_fatal:
            # Bad sample: keep the baseline, emit nothing.
            logger.warning("ignoring position sample: %s", error.message or "transient error")
            return
        self.stop()
        self._report_unavailable(CapabilityUnavailable(f"Geolocation {error.kind.value}: {error.message}".rstrip(": ")))

    def _report_unavailable(self, err: CapabilityUnavailable) -> None:
        if self._unavailable_reported:
            return
        self._unavailable_reported = True
        logger.warning("geolocation movement inert: %s", err)
        if self._on_unavailable is not None:
            self._on_unavailable(err)


class MovementSwitch:
    """Holds the closed set of controllers and keeps exactly one of them running."""

    def __init__(self, controllers: Mapping[MovementKind, MovementController]) -> None:
        self._controllers = dict(controllers)
        self._active_kind: MovementKind | None = None

    @property
    def active_kind(self) -> MovementKind | None:
        return self._active_kind

    def controller(self, kind: MovementKind) -> MovementController:
        try:
            return self._controllers[kind]
        except KeyError:
            raise ValueError(f"Movement source '{kind}' is not configured") from None

    def is_current(self, kind: MovementKind) -> bool:
        return self._active_kind == kind

    def activate(self, kind: MovementKind) -> MovementController:
        incoming = self.controller(kind)
        if self._active_kind is not None:
            # Outgoing controller is always stopped before the incoming one starts.
            self._controllers[self._active_kind].stop()
        self._active_kind = kind
        incoming.start()
        return incoming

    def deactivate(self) -> None:
        if self._active_kind is not None:
            self._controllers[self._active_kind].stop()
        self._active_kind = None
