import threading
import multiprocessing
from collections import OrderedDict

import numpy

import config
import logutil
import msocket
from blocks import UnknownBlockError, check_blocks
from chunk_cache import key_of


class ChunkFetchError(Exception):
    """The remote chunk could not be obtained; callers fall back to local generation."""


def request_query(params):
    """The query a remote server needs to regenerate `params`."""
    cx, cy, cz = params.coordinate
    return {
        'size': str(params.size),
        'seed': params.world_seed,
        'base': str(params.base_block),
        'cx': str(cx),
        'cy': str(cy),
        'cz': str(cz),
        'surfaceScale': repr(float(params.surface_scale)),
        'cavesScale': repr(float(params.caves_scale)),
        'cavesThreshold': repr(float(params.caves_threshold)),
        'grassDepth': str(params.grass_depth),
        'dirtDepth': str(params.dirt_depth),
    }


class RemoteChunkSource(object):
    '''
    Fetches generated chunks from a ChunkServer

    Safe to call from several loader threads at once: each fetch uses its own
    connection. Remembers the last tag and payload per key so a repeated fetch
    sends the tag and accepts an empty "not modified" reply.
    '''
    def __init__(self, ip=None, port=None, timeout=None, max_tags=None):
        self.ip = ip if ip is not None else config.SERVER_IP
        self.port = port if port is not None else config.SERVER_PORT
        self.timeout = timeout if timeout is not None else getattr(config, 'FETCH_TIMEOUT', 5.0)
        if max_tags is None:
            max_tags = getattr(config, 'CLIENT_TAG_CACHE_ENTRIES', 1024)
        self.max_tags = max(1, int(max_tags))
        self._tags = OrderedDict()
        self._lock = threading.Lock()
        self.not_modified_total = 0

    def _remembered(self, key):
        with self._lock:
            entry = self._tags.get(key)
            if entry is not None:
                self._tags.move_to_end(key)
            return entry

    def _remember(self, key, tag, body):
        with self._lock:
            self._tags[key] = (tag, body)
            self._tags.move_to_end(key)
            while len(self._tags) > self.max_tags:
                self._tags.popitem(last=False)

    def _request(self, query, tag):
        try:
            conn = msocket.Client(self.ip, self.port)
        except (OSError, EOFError, multiprocessing.AuthenticationError) as ex:
            raise ChunkFetchError(f"cannot connect to {self.ip}:{self.port}: {ex!r}") from ex
        try:
            conn.send(('get_chunk', [query, tag]))
            if not conn.poll(self.timeout):
                raise ChunkFetchError(f"no reply within {self.timeout}s")
            reply = conn.recv()
            try:
                conn.send(('quit', []))
            except (OSError, EOFError):
                pass
        except (OSError, EOFError) as ex:
            raise ChunkFetchError(f"connection to {self.ip}:{self.port} failed: {ex!r}") from ex
        finally:
            conn.close()
        try:
            msg, data = reply
        except (TypeError, ValueError) as ex:
            raise ChunkFetchError("malformed reply") from ex
        if msg != 'chunk_response':
            raise ChunkFetchError(f"unexpected reply {msg!r}")
        try:
            status, headers, body = data
        except (TypeError, ValueError) as ex:
            raise ChunkFetchError("malformed reply") from ex
        return status, headers, body

    def fetch(self, params):
        """Return the flat uint8 voxel buffer for `params` or raise ChunkFetchError."""
        key = key_of(params)
        remembered = self._remembered(key)
        tag = remembered[0] if remembered is not None else None
        status, headers, body = self._request(request_query(params), tag)
        if status == 304 and remembered is not None:
            self.not_modified_total += 1
            body = remembered[1]
        elif status != 200:
            raise ChunkFetchError(f"server answered {status} for {key}")
        expected = params.size ** 3
        if not isinstance(body, bytes) or len(body) != expected:
            raise ChunkFetchError(f"chunk {key} has {len(body) if isinstance(body, bytes) else '?'} bytes, expected {expected}")
        blocks = numpy.frombuffer(body, dtype=numpy.uint8).copy()
        try:
            check_blocks(blocks)
        except UnknownBlockError as ex:
            raise ChunkFetchError(str(ex)) from ex
        if status == 200:
            etag = headers.get('ETag') if isinstance(headers, dict) else None
            if etag:
                self._remember(key, etag, body)
        logutil.log("SOURCE", f"fetched {key} status={status}", level="DEBUG")
        return blocks
