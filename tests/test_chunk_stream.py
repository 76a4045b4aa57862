import os
import sys
import threading

import numpy as np
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import mapgen
from blocks import STONE
from chunk_stream import ChunkStreamManager, chunk_coordinate
from server_connection import ChunkFetchError

SIZE = 4


class FakeRenderer(object):
    def __init__(self):
        self.rendered = []
        self.disposed = []

    def __call__(self, blocks, size, origin):
        self.rendered.append(origin)
        return origin, lambda: self.disposed.append(origin)


class ZeroSource(object):
    """Serves all-Air chunks, failing for the coordinates in `broken`."""
    def __init__(self, broken=(), error=ChunkFetchError):
        self.broken = set(broken)
        self.error = error
        self.fetched = []

    def fetch(self, params):
        self.fetched.append(params.coordinate)
        if params.coordinate in self.broken:
            raise self.error("unavailable")
        return np.zeros(params.size ** 3, dtype=np.uint8)


class BlockingSource(ZeroSource):
    def __init__(self):
        ZeroSource.__init__(self)
        self.release = threading.Event()

    def fetch(self, params):
        self.release.wait(10)
        return ZeroSource.fetch(self, params)


@pytest.fixture
def make_manager():
    managers = []

    def make(**kwargs):
        kwargs.setdefault('chunk_size', SIZE)
        kwargs.setdefault('view_radius', 1)
        kwargs.setdefault('world_seed', 'stream')
        kwargs.setdefault('max_workers', 2)
        manager = ChunkStreamManager(**kwargs)
        managers.append(manager)
        return manager

    yield make
    for manager in managers:
        manager.dispose()


def test_desired_coordinates_nearest_first(make_manager):
    manager = make_manager()
    coords = manager.desired_coordinates(0, 0)
    assert len(coords) == 9
    assert coords[0] == (0, 0)
    assert set(coords[1:5]) == {(1, 0), (-1, 0), (0, 1), (0, -1)}
    assert len(make_manager(view_radius=2).desired_coordinates(5, 5)) == 25


def test_local_generation_fills_the_view(make_manager):
    renderer = FakeRenderer()
    manager = make_manager(render=renderer)
    manager.ensure_around(0, 0)
    assert manager.wait_idle(10)
    assert set(manager.resident) == {(x, z) for x in (-1, 0, 1) for z in (-1, 0, 1)}
    assert not manager.inflight
    assert manager.stat_requests_total == 9
    assert manager.stat_fallback_total == 9
    assert len(renderer.rendered) == 9
    chunk = manager.resident[(1, -1)]
    assert chunk.origin == (4, 0, -4)
    expected = mapgen.generate_chunk(mapgen.default_params((1, 0, -1), SIZE, 'stream', STONE))
    assert np.array_equal(chunk.blocks, expected)


def test_load_is_idempotent(make_manager):
    source = BlockingSource()
    manager = make_manager(source=source)
    assert manager.load_at(0, 0) is not None
    assert manager.load_at(0, 0) is None
    assert manager.stat_requests_total == 1
    source.release.set()
    assert manager.wait_idle(10)
    assert (0, 0) in manager.resident
    assert manager.load_at(0, 0) is None
    assert manager.stat_requests_total == 1
    assert manager.stat_remote_total == 1


def test_failed_fetch_falls_back_to_local_generation(make_manager):
    source = ZeroSource(broken={(5, 0, 5)})
    manager = make_manager(source=source)
    manager.load_at(5, 5)
    manager.load_at(0, 0)
    assert manager.wait_idle(10)
    assert manager.stat_fallback_total == 1
    assert manager.stat_remote_total == 1
    assert not manager.resident[(0, 0)].blocks.any()
    expected = mapgen.generate_chunk(manager.fallback_params((5, 5)))
    assert np.array_equal(manager.resident[(5, 5)].blocks, expected)


def test_unexpected_source_error_falls_back(make_manager):
    manager = make_manager(source=ZeroSource(broken={(0, 0, 0)}, error=RuntimeError))
    manager.load_at(0, 0)
    assert manager.wait_idle(10)
    assert (0, 0) in manager.resident
    assert not manager.inflight
    assert manager.stat_fallback_total == 1
    assert manager.stat_remote_total == 0


def test_socket_error_while_standing_still_still_fills_the_view(make_manager):
    manager = make_manager(source=ZeroSource(broken={(0, 0, 0)}, error=OSError), view_radius=0)
    manager.update_observer((0.0, 0.0, 0.0))
    assert manager.wait_idle(10)
    manager.update_observer((1.0, 0.0, 1.0))
    manager.update_observer((-1.0, 0.0, 0.5))
    assert set(manager.resident) == {(0, 0)}
    expected = mapgen.generate_chunk(manager.fallback_params((0, 0)))
    assert np.array_equal(manager.resident[(0, 0)].blocks, expected)
    assert manager.stat_requests_total == 1


def test_render_failure_does_not_stop_the_drain(make_manager):
    calls = []

    def flaky_render(blocks, size, origin):
        calls.append(origin)
        if origin == (0, 0, 0):
            raise RuntimeError("no GL context")
        return origin, lambda: None

    manager = make_manager(render=flaky_render)
    manager.load_at(0, 0)
    manager.load_at(1, 0)
    assert manager.wait_idle(10)
    assert set(manager.resident) == {(1, 0)}
    assert not manager.inflight
    assert len(calls) == 2
    # ensure_around still loads and evicts after a failed render
    manager.ensure_around(5, 5)
    assert manager.stat_requests_total == 11
    assert (1, 0) not in manager.resident


def test_eviction_keeps_a_margin(make_manager):
    renderer = FakeRenderer()
    manager = make_manager(render=renderer)
    manager.ensure_around(0, 0)
    assert manager.wait_idle(10)
    manager.ensure_around(2, 0)
    # distance 2 is within view_radius + 1, distance 3 is not
    assert all((0, z) in manager.resident for z in (-1, 0, 1))
    assert all((-1, z) not in manager.resident for z in (-1, 0, 1))
    assert sorted(renderer.disposed) == sorted((-4, 0, z * SIZE) for z in (-1, 0, 1))
    assert manager.stat_evicted_total == 3
    assert manager.wait_idle(10)
    assert len(manager.resident) == 12


def test_dispose_discards_late_completions(make_manager):
    renderer = FakeRenderer()
    source = BlockingSource()
    manager = make_manager(render=renderer, source=source, max_workers=1)
    manager.load_at(0, 0)
    manager.load_at(1, 0)
    manager.dispose()
    source.release.set()
    assert manager.wait_idle(10)
    assert manager.resident == {}
    assert not manager.inflight
    assert renderer.rendered == []
    assert manager.stat_discarded_total == 2
    assert manager.load_at(0, 0) is None


def test_dispose_releases_resident_chunks(make_manager):
    renderer = FakeRenderer()
    manager = make_manager(render=renderer)
    manager.ensure_around(0, 0)
    assert manager.wait_idle(10)
    manager.dispose()
    assert manager.resident == {}
    assert len(renderer.disposed) == 9


def test_chunk_coordinate_rounds_halves_up():
    assert chunk_coordinate((5.9, 100.0, 0.0), 4) == (1, 0)
    assert chunk_coordinate((6.0, 0.0, -6.0), 4) == (2, -1)
    assert chunk_coordinate((-2.0, 0.0, -2.1), 4) == (0, -1)


def test_update_observer_only_reloads_on_chunk_change(make_manager):
    manager = make_manager()
    assert manager.update_observer((0.0, 0.0, 0.0)) == (0, 0)
    assert manager.stat_requests_total == 9
    manager.update_observer((1.0, 5.0, 1.0))
    assert manager.stat_requests_total == 9
    assert manager.update_observer((6.0, 0.0, 0.0)) == (2, 0)
    assert manager.center == (2, 0)
    assert manager.wait_idle(10)
    assert manager.stat_requests_total == 15
