'''
chunk_cache.py -- stable cache keys, weak content tags and a bounded chunk cache

A key serializes every generation parameter, pipe-delimited in a fixed order.
Only the seed is free text; every other field is numeric, so a key splits back
into its fields from both ends and distinct params always give distinct keys.
'''
import time
import threading
from collections import OrderedDict, namedtuple

import config
import logutil
import mapgen
from seeds import hash32

CacheEntry = namedtuple('CacheEntry', ['key', 'payload', 'tag', 'created'])


def _fmt(value):
    if isinstance(value, float):
        return repr(value)
    return str(value)


def key_of(params):
    cx, cy, cz = params.coordinate
    parts = [
        params.size,
        params.world_seed,
        params.base_block,
        cx, cy, cz,
        params.surface_scale,
        params.caves_scale,
        params.caves_threshold,
        params.grass_depth,
        params.dirt_depth,
    ]
    return '|'.join(_fmt(p) for p in parts)


def tag_of(key, size):
    """Weak tag for the chunk behind `key`; size disambiguates collisions across sizes."""
    return f'W/"{hash32(key):x}-{size}"'


class ChunkCache(object):
    '''
    LRU cache of generated chunks keyed by `key_of(params)`

    Payloads are immutable bytes, so callers can never mutate a cached chunk.
    Retention is by entry count only.
    '''
    def __init__(self, max_entries=None):
        if max_entries is None:
            max_entries = getattr(config, 'CHUNK_CACHE_ENTRIES', 512)
        self.max_entries = max(1, int(max_entries))
        self._entries = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    def put(self, entry):
        with self._lock:
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)
            while len(self._entries) > self.max_entries:
                old_key, _ = self._entries.popitem(last=False)
                logutil.log("CACHE", f"evicted {old_key}", level="DEBUG")

    def get_or_generate(self, params):
        key = key_of(params)
        entry = self.get(key)
        if entry is not None:
            self.hits += 1
            return entry
        self.misses += 1
        # Generation runs outside the lock; a racing duplicate produces identical bytes.
        payload = mapgen.generate_chunk(params).tobytes()
        entry = CacheEntry(key, payload, tag_of(key, params.size), time.time())
        self.put(entry)
        return entry
