#std/external libs
import dataclasses
import numpy

#local libs
from blocks import AIR, GRASS, DIRT, STONE, check_block_id
import perlin
import seeds
import config
import logutil


def clamp_size(size):
    return max(config.MIN_CHUNK_SIZE, min(config.MAX_CHUNK_SIZE, int(size)))


@dataclasses.dataclass(frozen=True)
class GenerationParams:
    """Everything that influences a generated chunk. Equal params give byte-identical chunks."""
    size: int = config.CHUNK_SIZE
    world_seed: str = config.WORLD_SEED
    base_block: int = STONE
    coordinate: tuple = (0, 0, 0)
    surface_scale: float = config.SURFACE_SCALE
    caves_scale: float = config.CAVES_SCALE
    caves_threshold: float = config.CAVES_THRESHOLD
    grass_depth: int = config.GRASS_DEPTH
    dirt_depth: int = config.DIRT_DEPTH

    def __post_init__(self):
        # Out of range sizes are clamped, never rejected.
        object.__setattr__(self, 'size', clamp_size(self.size))
        object.__setattr__(self, 'world_seed', str(self.world_seed))
        object.__setattr__(self, 'coordinate', tuple(int(c) for c in self.coordinate))
        object.__setattr__(self, 'surface_scale', float(self.surface_scale))
        object.__setattr__(self, 'caves_scale', float(self.caves_scale))
        object.__setattr__(self, 'caves_threshold', float(self.caves_threshold))
        object.__setattr__(self, 'grass_depth', int(self.grass_depth))
        object.__setattr__(self, 'dirt_depth', int(self.dirt_depth))
        if len(self.coordinate) != 3:
            raise ValueError(f"chunk coordinate must have 3 components, got {self.coordinate!r}")

    @property
    def origin(self):
        return chunk_origin(self.coordinate, self.size)


def default_params(coordinate, size=config.CHUNK_SIZE, world_seed=config.WORLD_SEED, base_block=STONE):
    """Default terrain for `coordinate`; what the stream manager generates when the server is unavailable."""
    return GenerationParams(size=size, world_seed=world_seed, base_block=base_block, coordinate=coordinate)


def chunk_index(x, y, z, size):
    """Index of voxel (x, y, z) in a flat chunk buffer (x fastest)."""
    return x + y * size + z * size * size


def chunk_origin(coordinate, size):
    """Voxel-space position of the chunk's (0, 0, 0) voxel."""
    cx, cy, cz = coordinate
    return (cx * size, cy * size, cz * size)


def fill_chunk(size, block):
    """A (z, y, x) voxel array with every cell set to `block`.

    `fill_chunk(...).reshape(-1)` is the flat buffer, indexed x + y*size + z*size**2.
    """
    return numpy.full((size, size, size), check_block_id(block), dtype=numpy.uint8)


def apply_relief(blocks, noise, scale, mode='surface', threshold=0.5, fill=AIR, origin=(0, 0, 0)):
    """ Carve the (z, y, x) array `blocks` in place using `noise`.

    Samples are taken at world-space (local + origin) * scale.

    'surface'          cells above floor(sample*size) in each column become `fill`
    'reverse-surface'  cells below floor(sample*size) in each column become `fill`
    '3d'               cells whose 3D sample exceeds `threshold` become `fill`
    """
    fill = check_block_id(fill)
    size = blocks.shape[0]
    ox, oy, oz = origin
    if mode in ('surface', 'reverse-surface'):
        zs, xs = numpy.mgrid[0:size, 0:size]
        sample = noise.noise((xs + ox) * scale, (zs + oz) * scale)
        heights = numpy.floor(sample * size)
        ys = numpy.arange(size)[None, :, None]
        if mode == 'surface':
            mask = ys > heights[:, None, :]
        else:
            mask = ys < heights[:, None, :]
        blocks[mask] = fill
    elif mode == '3d':
        # One z slab at a time keeps the float temporaries at size**2.
        ys, xs = numpy.mgrid[0:size, 0:size]
        wx = (xs + ox) * scale
        wy = (ys + oy) * scale
        for z in range(size):
            sample = noise.noise(wx, wy, (z + oz) * scale)
            blocks[z][sample > threshold] = fill
    else:
        raise ValueError(f"unknown relief mode {mode!r}")
    return blocks


def carve_surface(blocks, noise, scale, origin):
    return apply_relief(blocks, noise, scale, mode='surface', fill=AIR, origin=origin)


def carve_caves(blocks, noise, scale, threshold, origin):
    # Independent per-voxel test; isolated air pockets are valid output.
    return apply_relief(blocks, noise, scale, mode='3d', threshold=threshold, fill=AIR, origin=origin)


def column_tops(blocks):
    """Highest non-Air y of every (z, x) column, -1 where the column is all Air."""
    size = blocks.shape[1]
    solid = blocks != AIR
    any_solid = solid.any(axis=1)
    top_from_rev = numpy.argmax(solid[:, ::-1, :], axis=1)
    return numpy.where(any_solid, (size - 1) - top_from_rev, -1)


def paint_layer(blocks, from_block, to_block, depth, mode='contiguous'):
    """ Replace up to `depth` voxels per column, scanning down from the column top.

    'contiguous'  stops at the first voxel that is Air or not `from_block`
    'any'         replaces every voxel matching `from_block` (any non-Air voxel
                  when `from_block` is None), skipping the rest without stopping

    Columns that are all Air are left untouched.
    """
    to_block = check_block_id(to_block)
    if from_block is not None:
        from_block = check_block_id(from_block)
    depth = int(depth)
    if depth <= 0:
        return blocks
    if mode not in ('contiguous', 'any'):
        raise ValueError(f"unknown paint mode {mode!r}")
    size = blocks.shape[1]
    tops = column_tops(blocks)
    zs, xs = numpy.nonzero(tops >= 0)
    ys = tops[zs, xs]
    if mode == 'contiguous':
        for _ in range(depth):
            live = ys >= 0
            zs, xs, ys = zs[live], xs[live], ys[live]
            if len(ys) == 0:
                break
            b = blocks[zs, ys, xs]
            hit = b != AIR
            if from_block is not None:
                hit &= b == from_block
            zs, xs, ys = zs[hit], xs[hit], ys[hit]
            blocks[zs, ys, xs] = to_block
            ys = ys - 1
    else:
        replaced = numpy.zeros(len(ys), dtype=numpy.int64)
        for _ in range(size):
            live = (ys >= 0) & (replaced < depth)
            zs, xs, ys, replaced = zs[live], xs[live], ys[live], replaced[live]
            if len(ys) == 0:
                break
            b = blocks[zs, ys, xs]
            hit = b != AIR
            if from_block is not None:
                hit &= b == from_block
            blocks[zs[hit], ys[hit], xs[hit]] = to_block
            replaced += hit
            ys = ys - 1
    return blocks


def generate_chunk(params):
    """ Generate the voxel buffer for `params`.

    Phases, in order: base fill, surface heightmap, caves, grass (contiguous)
    then dirt (any). Returns a fresh flat uint8 array of size**3 codes.
    """
    size = params.size
    origin = params.origin
    base = check_block_id(params.base_block)
    surface_seed, caves_seed = seeds.chunk_noise_seeds(params.world_seed, origin)
    surface_noise = perlin.PerlinNoise(surface_seed)
    caves_noise = perlin.PerlinNoise(caves_seed)

    blocks = fill_chunk(size, base)
    carve_surface(blocks, surface_noise, params.surface_scale, origin)
    carve_caves(blocks, caves_noise, params.caves_scale, params.caves_threshold, origin)
    # Both passes match the base block, so dirt lands under the fresh grass.
    if params.grass_depth > 0:
        paint_layer(blocks, base, GRASS, params.grass_depth, mode='contiguous')
    if params.dirt_depth > 0:
        paint_layer(blocks, base, DIRT, params.dirt_depth, mode='any')
    logutil.log("MAPGEN", f"generated chunk {params.coordinate} size={size} seed={params.world_seed!r}", level="DEBUG")
    return blocks.reshape(-1)
