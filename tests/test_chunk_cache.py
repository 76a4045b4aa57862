import os
import re
import sys
import dataclasses

import numpy as np

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import mapgen
from blocks import STONE, DIRT
from chunk_cache import ChunkCache, key_of, tag_of
from seeds import hash32


def test_key_format():
    params = mapgen.GenerationParams(size=16, world_seed="1", base_block=STONE, coordinate=(1, 0, -2))
    assert key_of(params) == "16|1|3|1|0|-2|0.04|0.16|0.72|2|3"


def test_every_field_changes_the_key():
    base = mapgen.GenerationParams(size=16, world_seed="1", coordinate=(0, 0, 0))
    variants = [
        dict(size=17),
        dict(world_seed="2"),
        dict(base_block=DIRT),
        dict(coordinate=(1, 0, 0)),
        dict(coordinate=(0, 1, 0)),
        dict(coordinate=(0, 0, 1)),
        dict(surface_scale=0.05),
        dict(caves_scale=0.17),
        dict(caves_threshold=0.73),
        dict(grass_depth=3),
        dict(dirt_depth=4),
    ]
    keys = {key_of(base)}
    for change in variants:
        keys.add(key_of(dataclasses.replace(base, **change)))
    assert len(keys) == len(variants) + 1


def test_seed_with_separator_cannot_collide():
    a = mapgen.GenerationParams(world_seed="1|3")
    b = mapgen.GenerationParams(world_seed="1")
    assert key_of(a) != key_of(b)


def test_tag_format():
    key = key_of(mapgen.GenerationParams(size=16))
    tag = tag_of(key, 16)
    assert re.match(r'^W/"[0-9a-f]+-16"$', tag)
    assert tag == 'W/"%x-16"' % hash32(key)
    assert tag_of(key, 32) != tag


def test_cache_returns_generated_bytes():
    cache = ChunkCache(4)
    params = mapgen.GenerationParams(size=8, world_seed="c")
    entry = cache.get_or_generate(params)
    assert entry.payload == mapgen.generate_chunk(params).tobytes()
    assert entry.tag == tag_of(entry.key, 8)
    assert cache.get_or_generate(params) is entry
    assert (cache.hits, cache.misses) == (1, 1)
    assert np.frombuffer(entry.payload, dtype=np.uint8).shape == (8 ** 3,)


def test_cache_evicts_least_recently_used():
    cache = ChunkCache(2)
    p = [mapgen.GenerationParams(size=4, coordinate=(i, 0, 0)) for i in range(3)]
    cache.get_or_generate(p[0])
    cache.get_or_generate(p[1])
    cache.get_or_generate(p[0])
    cache.get_or_generate(p[2])
    assert len(cache) == 2
    assert key_of(p[0]) in cache
    assert key_of(p[1]) not in cache
    assert key_of(p[2]) in cache


def test_equal_params_share_a_key():
    as_ints = mapgen.GenerationParams(surface_scale=1, caves_scale=np.float64(0.16), caves_threshold=1)
    as_floats = mapgen.GenerationParams(surface_scale=1.0, caves_scale=0.16, caves_threshold=1.0)
    assert as_ints == as_floats
    assert key_of(as_ints) == key_of(as_floats)
    assert "|1.0|0.16|1.0|" in key_of(as_ints)
    assert type(as_ints.caves_scale) is float
