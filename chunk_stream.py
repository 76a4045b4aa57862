# standard library imports
import math
import time
import queue
import concurrent.futures
from collections import namedtuple

# local imports
import config
import logutil
import mapgen
from blocks import block_id
from server_connection import ChunkFetchError

ResidentChunk = namedtuple('ResidentChunk', ['handle', 'dispose', 'blocks', 'origin'])


def _noop():
    pass


def null_render(blocks, size, origin):
    """Render collaborator for headless use: nothing to draw, nothing to free."""
    return None, _noop


def chunk_coordinate(position, size):
    """Chunk (cx, cz) holding world `position`; halves round up."""
    x, _, z = position
    return int(math.floor(x / size + 0.5)), int(math.floor(z / size + 0.5))


def chebyshev(a, b):
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def stream_log(msg, level="DEBUG"):
    if level == "DEBUG" and not getattr(config, 'LOG_STREAM_CHUNKS', False):
        return
    logutil.log("STREAM", msg, level=level)


class ChunkStreamManager(object):
    '''
    Keeps the chunks around an observer resident

    Loads run on a thread pool: each one fetches the chunk from `source` and
    falls back to generating it locally when the fetch fails. Finished loads
    are queued and only admitted by `drain_completed` on the owning thread, so
    `resident` and `inflight` are never touched by workers.

    Chunks are loaded within `view_radius` (Chebyshev, in chunks) of the
    center and kept until they are more than `view_radius + EVICT_MARGIN`
    away, so small movements back and forth do not reload the border ring.
    '''
    def __init__(self, render=None, source=None, chunk_size=None, view_radius=None,
                 world_seed=None, base_block=None, terrain=None, executor=None, max_workers=None):
        self.render = render if render is not None else null_render
        self.source = source
        self.chunk_size = mapgen.clamp_size(chunk_size if chunk_size is not None else config.CHUNK_SIZE)
        self.view_radius = int(view_radius if view_radius is not None else config.VIEW_RADIUS)
        self.keep_radius = self.view_radius + getattr(config, 'EVICT_MARGIN', 1)
        self.world_seed = str(world_seed if world_seed is not None else config.WORLD_SEED)
        if base_block is None:
            base_block = getattr(config, 'WORLD_BASE_BLOCK', 'Stone')
        self.base_block = block_id(base_block)
        self.chunk_y = getattr(config, 'STREAM_CHUNK_Y', 0)
        # Overrides for the terrain fields of requests sent to the source.
        self.terrain = dict(terrain or {})
        if executor is None:
            executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=max_workers or getattr(config, 'LOADER_WORKERS', 4),
                thread_name_prefix='ChunkLoader',
            )
            self._owns_executor = True
        else:
            self._owns_executor = False
        self.executor = executor

        self.resident = {}
        self.inflight = set()
        self.disposed = False
        self.completed = queue.SimpleQueue()
        self._futures = {}
        self.center = None

        self.stat_requests_total = 0
        self.stat_remote_total = 0
        self.stat_fallback_total = 0
        self.stat_evicted_total = 0
        self.stat_discarded_total = 0

    def request_params(self, coord):
        cx, cz = coord
        return mapgen.GenerationParams(
            size=self.chunk_size,
            world_seed=self.world_seed,
            base_block=self.base_block,
            coordinate=(cx, self.chunk_y, cz),
            **self.terrain
        )

    def fallback_params(self, coord):
        cx, cz = coord
        return mapgen.default_params((cx, self.chunk_y, cz), self.chunk_size, self.world_seed, self.base_block)

    def desired_coordinates(self, cx, cz):
        """Every coordinate within view_radius of (cx, cz), nearest first."""
        r = self.view_radius
        coords = [(cx + dx, cz + dz) for dx in range(-r, r + 1) for dz in range(-r, r + 1)]
        coords.sort(key=lambda c: (chebyshev(c, (cx, cz)), (c[0] - cx) ** 2 + (c[1] - cz) ** 2))
        return coords

    def ensure_around(self, cx, cz):
        self.drain_completed()
        self.center = (cx, cz)
        for coord in self.desired_coordinates(cx, cz):
            self.load_at(*coord)
        self.evict_outside(cx, cz)

    def load_at(self, cx, cz):
        coord = (cx, cz)
        if self.disposed or coord in self.resident or coord in self.inflight:
            return None
        self.inflight.add(coord)
        self.stat_requests_total += 1
        try:
            future = self.executor.submit(self._load_job, coord)
        except RuntimeError:
            # executor already shut down
            self.inflight.discard(coord)
            return None
        self._futures[coord] = future
        future.add_done_callback(lambda f, coord=coord: self.completed.put((coord, f)))
        return future

    def _load_job(self, coord):
        """Runs on a loader thread. Returns (blocks, origin, remote)."""
        if self.source is not None:
            params = self.request_params(coord)
            try:
                return self.source.fetch(params), params.origin, True
            except ChunkFetchError as ex:
                stream_log(f"fetch of {coord} failed, generating locally: {ex}", level="WARN")
            except Exception as ex:
                # sources other than RemoteChunkSource may raise anything
                stream_log(f"fetch of {coord} raised {ex!r}, generating locally", level="WARN")
        params = self.fallback_params(coord)
        return mapgen.generate_chunk(params), params.origin, False

    def _admit(self, coord, future):
        if self.disposed or future.cancelled():
            self.stat_discarded_total += 1
            return
        try:
            blocks, origin, remote = future.result()
        except Exception as ex:
            logutil.log("STREAM", f"load of {coord} failed: {ex!r}", level="ERROR")
            return
        if remote:
            self.stat_remote_total += 1
        else:
            self.stat_fallback_total += 1
        try:
            handle, dispose = self.render(blocks, self.chunk_size, origin)
        except Exception as ex:
            logutil.log("STREAM", f"render of {coord} failed: {ex!r}", level="ERROR")
            return
        self.resident[coord] = ResidentChunk(handle, dispose, blocks, origin)
        stream_log(f"resident {coord} ({'remote' if remote else 'local'})")

    def _finish(self, coord, future):
        try:
            self._admit(coord, future)
        finally:
            self.inflight.discard(coord)
            if self._futures.get(coord) is future:
                del self._futures[coord]

    def drain_completed(self):
        """Admit finished loads. Returns the number of completions handled."""
        count = 0
        while True:
            try:
                coord, future = self.completed.get_nowait()
            except queue.Empty:
                return count
            count += 1
            self._finish(coord, future)

    def release(self, coord):
        chunk = self.resident.get(coord)
        if chunk is None:
            return
        try:
            chunk.dispose()
        finally:
            del self.resident[coord]

    def evict_outside(self, cx, cz):
        stale = [c for c in self.resident if chebyshev(c, (cx, cz)) > self.keep_radius]
        for coord in stale:
            self.release(coord)
            self.stat_evicted_total += 1
        if stale:
            stream_log(f"evicted {len(stale)} chunks around {(cx, cz)}")
        return stale

    def update_observer(self, position):
        coord = chunk_coordinate(position, self.chunk_size)
        if coord != self.center:
            self.ensure_around(*coord)
        else:
            self.drain_completed()
        return coord

    def wait_idle(self, timeout=None):
        """Block until no load is inflight, admitting completions as they arrive.

        Returns False when `timeout` (seconds) ran out first.
        """
        deadline = None
        # Futures finish before their callbacks enqueue them, so wait on the queue itself.
        if timeout is not None:
            deadline = time.monotonic() + timeout
        self.drain_completed()
        while self.inflight:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
            try:
                coord, future = self.completed.get(timeout=remaining)
            except queue.Empty:
                return False
            self._finish(coord, future)
        return True

    def dispose(self):
        if self.disposed:
            return
        self.disposed = True
        for future in list(self._futures.values()):
            future.cancel()
        for coord in list(self.resident):
            self.release(coord)
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
        logutil.log("STREAM", f"disposed after {self.stat_requests_total} requests "
                    f"({self.stat_remote_total} remote, {self.stat_fallback_total} local)")
