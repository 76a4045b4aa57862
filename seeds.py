'''
seeds.py -- reproducible 32-bit integers from the world seed and chunk origins

All arithmetic is integer arithmetic modulo 2**32 so results are identical on
every platform. Two noise seeds are derived per chunk: one for the surface
heightmap and one for caves.
'''
import numpy

MASK32 = 0xFFFFFFFF
FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619

# Channel constants mixed in last so surface and cave noise stay decorrelated.
SURFACE_CHANNEL = 0xA1
CAVES_CHANNEL = 0xB2
# Applied to the world seed hash before deriving the cave seed.
CAVES_SEED_SALT = 0x9E3779B9

UNIT_FLOAT_BITS = 0x7FFFFFF # 27 bits of mantissa
UNIT_FLOAT_SCALE = 0x8000000


def _code_units(text):
    # UTF-16 code units, so astral characters hash as their surrogate pair.
    return numpy.frombuffer(text.encode('utf-16-le'), dtype='<u2').tolist()


def hash32(text):
    """FNV-1a hash of `text` as an unsigned 32-bit int."""
    h = FNV_OFFSET_BASIS
    for unit in _code_units(text):
        h ^= unit
        h = (h * FNV_PRIME) & MASK32
    return h


def fmix32(n):
    """MurmurHash3 32-bit finalizer. Negative ints wrap modulo 2**32."""
    x = n & MASK32
    x ^= x >> 16
    x = (x * 0x7FEB352D) & MASK32
    x ^= x >> 15
    x = (x * 0x846CA68B) & MASK32
    x ^= x >> 16
    return x


def mix(*values):
    """Fold `values` into one unsigned 32-bit int.

    Callers pass (base_hash, origin_x, origin_y, origin_z, channel) in that order.
    """
    h = FNV_OFFSET_BASIS
    for n in values:
        h ^= fmix32(int(n))
    return h


def to_unit_float(u32):
    """Map an unsigned 32-bit int to a float in [0, 1)."""
    return (u32 & UNIT_FLOAT_BITS) / UNIT_FLOAT_SCALE


def chunk_noise_seeds(world_seed, origin):
    """Return (surface_seed, caves_seed) for the chunk whose voxel-space origin is `origin`."""
    ox, oy, oz = origin
    base_hash = hash32(world_seed)
    surface = to_unit_float(mix(base_hash, ox, oy, oz, SURFACE_CHANNEL))
    caves = to_unit_float(mix(base_hash ^ CAVES_SEED_SALT, ox, oy, oz, CAVES_CHANNEL))
    return surface, caves
