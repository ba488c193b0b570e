"""Terminal geometry: coalesced PTY resizes and pane-size fitting."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from loguru import logger

from agent_station.terminal.errors import ResizeIgnored

if TYPE_CHECKING:
    from agent_station.terminal.session import TerminalSession

MIN_COLS = 2
MIN_ROWS = 1
MIN_ZOOM = 0.5
MAX_ZOOM = 2.0
ZOOM_STEP = 0.1


@dataclass(frozen=True)
class Geometry:
    """Terminal size in character cells."""

    cols: int
    rows: int

    def __post_init__(self) -> None:
        if self.cols < 1 or self.rows < 1:
            raise ValueError(f"Invalid terminal size {self.cols}x{self.rows}")


class GeometrySynchronizer:
    """Apply only the latest requested size per session.

    Requests made in the same loop iteration collapse into one resize, so a
    drag-resize storm never reaches the child as a sequence of intermediate
    sizes. Must be used from the event loop thread.
    """

    def __init__(self) -> None:
        self._pending: dict[str, tuple["TerminalSession", Geometry]] = {}

    def request(self, session: "TerminalSession", cols: int, rows: int) -> None:
        geometry = Geometry(cols, rows)
        scheduled = session.session_id in self._pending
        self._pending[session.session_id] = (session, geometry)
        if not scheduled:
            asyncio.get_running_loop().call_soon(self._flush, session.session_id)

    def _flush(self, session_id: str) -> None:
        entry = self._pending.pop(session_id, None)
        if entry is None:
            return
        session, geometry = entry
        try:
            session.apply_geometry(geometry)
        except ResizeIgnored as exc:
            logger.debug(f"[geometry] resize dropped for {session_id[:8]}: {exc}")


@dataclass(frozen=True)
class CellMetrics:
    """Approximate monospace cell size derived from font settings."""

    font_size: int = 13
    line_height: float = 1.2
    char_aspect: float = 0.6
    zoom: float = 1.0

    @property
    def cell_width(self) -> float:
        return self.font_size * self.zoom * self.char_aspect

    @property
    def cell_height(self) -> float:
        return self.font_size * self.zoom * self.line_height

    def with_zoom(self, zoom: float) -> "CellMetrics":
        return CellMetrics(self.font_size, self.line_height, self.char_aspect, clamp_zoom(zoom))


def clamp_zoom(zoom: float) -> float:
    return round(min(MAX_ZOOM, max(MIN_ZOOM, zoom)), 2)


def fit(width_px: int, height_px: int, metrics: CellMetrics, padding_px: int = 0) -> Geometry:
    """Return how many cells fit a pixel area, like a terminal fit addon."""
    usable_w = max(0, width_px - 2 * padding_px)
    usable_h = max(0, height_px - 2 * padding_px)
    cols = max(MIN_COLS, math.floor(usable_w / metrics.cell_width))
    rows = max(MIN_ROWS, math.floor(usable_h / metrics.cell_height))
    return Geometry(cols, rows)


class SurfaceGeometry:
    """Pane-side funnel for everything that changes how many cells fit.

    Pane resize, first visibility and zoom changes all end in one
    ``resize(session_id, cols, rows)`` call.
    """

    def __init__(
        self,
        resize: Callable[[str, int, int], None],
        metrics: CellMetrics | None = None,
        padding_px: int = 8,
    ) -> None:
        self._resize = resize
        self._metrics = metrics or CellMetrics()
        self._padding_px = padding_px
        self._surfaces: dict[str, tuple[int, int]] = {}
        self._applied: dict[str, Geometry] = {}

    @property
    def metrics(self) -> CellMetrics:
        return self._metrics

    @property
    def zoom(self) -> float:
        return self._metrics.zoom

    def current(self, session_id: str) -> Geometry | None:
        return self._applied.get(session_id)

    def on_first_visible(self, session_id: str, width_px: int, height_px: int) -> Geometry:
        self._applied.pop(session_id, None)
        return self.on_surface_resized(session_id, width_px, height_px)

    def on_surface_resized(self, session_id: str, width_px: int, height_px: int) -> Geometry:
        self._surfaces[session_id] = (width_px, height_px)
        return self._sync(session_id)

    def on_zoom_changed(self, zoom: float) -> list[Geometry]:
        zoom = clamp_zoom(zoom)
        if zoom == self._metrics.zoom:
            return []
        self._metrics = self._metrics.with_zoom(zoom)
        return [self._sync(session_id) for session_id in list(self._surfaces)]

    def forget(self, session_id: str) -> None:
        self._surfaces.pop(session_id, None)
        self._applied.pop(session_id, None)

    def _sync(self, session_id: str) -> Geometry:
        width_px, height_px = self._surfaces[session_id]
        geometry = fit(width_px, height_px, self._metrics, self._padding_px)
        if self._applied.get(session_id) != geometry:
            self._resize(session_id, geometry.cols, geometry.rows)
            self._applied[session_id] = geometry
        return geometry
