"""Unit tests for resize coalescing and pane fitting."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from agent_station.terminal.errors import UnknownSession
from agent_station.terminal.geometry import (
    MAX_ZOOM,
    MIN_ZOOM,
    CellMetrics,
    Geometry,
    SurfaceGeometry,
    clamp_zoom,
    fit,
)
from agent_station.terminal.registry import SessionRegistry
from tests.fakes import FakeBackendFactory, wait_for


async def _drain() -> None:
    await asyncio.sleep(0)
    await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Registry resize
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_rapid_resizes_apply_only_the_latest(
    registry: SessionRegistry, fake_factory: FakeBackendFactory, project_dir: Path
):
    session_id = await registry.create("p1", str(project_dir))

    registry.resize(session_id, 80, 24)
    registry.resize(session_id, 100, 30)
    registry.resize(session_id, 120, 40)
    await _drain()

    assert fake_factory.last.resizes == [(80, 24), (120, 40)]
    assert registry.get(session_id).geometry == Geometry(120, 40)


@pytest.mark.asyncio
async def test_resize_to_current_size_is_noop(
    registry: SessionRegistry, fake_factory: FakeBackendFactory, project_dir: Path
):
    session_id = await registry.create("p1", str(project_dir), cols=100, rows=30)

    registry.resize(session_id, 100, 30)
    await _drain()

    assert fake_factory.last.resizes == [(100, 30)]


@pytest.mark.asyncio
async def test_resize_of_exited_session_is_silently_dropped(
    registry: SessionRegistry, fake_factory: FakeBackendFactory, project_dir: Path
):
    session_id = await registry.create("p1", str(project_dir))
    fake_factory.last.exit(0)
    await wait_for(lambda: not registry.is_running(session_id))

    registry.resize(session_id, 120, 40)
    await _drain()

    assert fake_factory.last.resizes == [(80, 24)]


@pytest.mark.asyncio
async def test_resize_of_retired_session_raises_unknown(registry: SessionRegistry, project_dir: Path):
    session_id = await registry.create("p1", str(project_dir))
    await registry.close(session_id)

    with pytest.raises(UnknownSession):
        registry.resize(session_id, 120, 40)


def test_geometry_rejects_empty_sizes():
    with pytest.raises(ValueError):
        Geometry(0, 24)
    with pytest.raises(ValueError):
        Geometry(80, 0)


# ---------------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------------


def test_fit_divides_usable_area_by_cell_size():
    metrics = CellMetrics(font_size=10, line_height=1.2, char_aspect=0.6)

    assert fit(616, 256, metrics, padding_px=8) == Geometry(100, 20)
    assert fit(600, 240, metrics) == Geometry(100, 20)


def test_fit_never_goes_below_minimum():
    assert fit(0, 0, CellMetrics()) == Geometry(2, 1)


def test_zoom_scales_cells():
    metrics = CellMetrics(font_size=10, char_aspect=0.6, line_height=1.2).with_zoom(2.0)

    assert metrics.cell_width == pytest.approx(12.0)
    assert metrics.cell_height == pytest.approx(24.0)
    assert fit(600, 240, metrics) == Geometry(50, 10)


def test_clamp_zoom_bounds():
    assert clamp_zoom(5.0) == MAX_ZOOM
    assert clamp_zoom(0.1) == MIN_ZOOM
    assert clamp_zoom(1.1) == 1.1


# ---------------------------------------------------------------------------
# SurfaceGeometry
# ---------------------------------------------------------------------------


@pytest.fixture
def resize_calls() -> list[tuple[str, int, int]]:
    return []


@pytest.fixture
def surface(resize_calls: list[tuple[str, int, int]]) -> SurfaceGeometry:
    return SurfaceGeometry(
        resize=lambda sid, cols, rows: resize_calls.append((sid, cols, rows)),
        metrics=CellMetrics(font_size=10, line_height=1.2, char_aspect=0.6),
        padding_px=8,
    )


def test_first_visible_and_pane_resize_funnel_into_resize(surface, resize_calls):
    surface.on_first_visible("s1", 616, 256)
    surface.on_surface_resized("s1", 616, 256)
    surface.on_surface_resized("s1", 316, 256)

    assert resize_calls == [("s1", 100, 20), ("s1", 50, 20)]
    assert surface.current("s1") == Geometry(50, 20)


def test_zoom_change_refits_every_surface(surface, resize_calls):
    surface.on_first_visible("s1", 616, 256)
    surface.on_first_visible("s2", 316, 136)
    resize_calls.clear()

    assert surface.on_zoom_changed(2.0) == [Geometry(50, 10), Geometry(25, 5)]
    assert resize_calls == [("s1", 50, 10), ("s2", 25, 5)]
    assert surface.on_zoom_changed(9.0) == []
    assert surface.zoom == MAX_ZOOM


def test_first_visible_after_forget_resends_size(surface, resize_calls):
    surface.on_first_visible("s1", 616, 256)
    surface.forget("s1")
    surface.on_first_visible("s1", 616, 256)

    assert resize_calls == [("s1", 100, 20), ("s1", 100, 20)]


def test_failed_resize_is_retried_on_next_sync():
    calls: list[tuple[int, int]] = []

    def flaky(_sid: str, cols: int, rows: int) -> None:
        calls.append((cols, rows))
        if len(calls) == 1:
            raise RuntimeError("loop not ready")

    surface = SurfaceGeometry(flaky, CellMetrics(font_size=10, line_height=1.2, char_aspect=0.6))
    with pytest.raises(RuntimeError):
        surface.on_first_visible("s1", 616, 256)
    surface.on_surface_resized("s1", 616, 256)

    assert calls == [(100, 20), (100, 20)]
