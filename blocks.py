import numpy


class UnknownBlockError(ValueError):
    """Raised when a block code outside the registered set reaches generation."""


class Block(object):
    name = None
    # Only solid blocks hide the faces of their neighbors.
    solid = True
    color = (255, 255, 255)

class Air(Block):
    name = 'Air'
    solid = False
    color = (0, 0, 0)

class Grass(Block):
    name = 'Grass'
    color = (77, 168, 52)

class Dirt(Block):
    name = 'Dirt'
    color = (121, 85, 58)

class Stone(Block):
    name = 'Stone'
    color = (125, 125, 125)

class Flower(Block):
    solid = False

class RedFlower(Flower):
    name = 'Red Flower'
    color = (200, 30, 40)

class OrangeFlower(Flower):
    name = 'Orange Flower'
    color = (235, 130, 30)

class PinkFlower(Flower):
    name = 'Pink Flower'
    color = (240, 140, 190)

class WhiteFlower(Flower):
    name = 'White Flower'
    color = (240, 240, 240)

class Gizmos(Block):
    # Utility overlay block, never occludes anything.
    name = 'Gizmos'
    solid = False
    color = (0, 58, 74)

# Position in this list is the block code stored in voxel buffers.
BLOCKS = [
    Air,
    Grass,
    Dirt,
    Stone,
    RedFlower,
    OrangeFlower,
    PinkFlower,
    WhiteFlower,
    Gizmos,
]

BLOCK_ID = {}
for i, x in enumerate(BLOCKS):
    BLOCK_ID[x.name] = i
BLOCK_NAME = {i: name for name, i in BLOCK_ID.items()}

AIR = BLOCK_ID['Air']
GRASS = BLOCK_ID['Grass']
DIRT = BLOCK_ID['Dirt']
STONE = BLOCK_ID['Stone']
FLOWERS = (
    BLOCK_ID['Red Flower'],
    BLOCK_ID['Orange Flower'],
    BLOCK_ID['Pink Flower'],
    BLOCK_ID['White Flower'],
)
GIZMOS = BLOCK_ID['Gizmos']

BLOCK_SOLID = numpy.array([x.solid for x in BLOCKS], dtype=numpy.uint8)
BLOCK_COLORS = numpy.array([x.color for x in BLOCKS], dtype=numpy.float32)


def check_block_id(block_id):
    """Return `block_id` as an int, raising UnknownBlockError if it is not a registered code."""
    try:
        code = int(block_id)
    except (TypeError, ValueError):
        raise UnknownBlockError(f"block code {block_id!r} is not an integer")
    if code != block_id or code < 0 or code >= len(BLOCKS):
        raise UnknownBlockError(f"unknown block code {block_id!r}")
    return code


def block_id(name_or_id):
    """Resolve a block name (e.g. 'Stone') or code to a registered code."""
    if isinstance(name_or_id, str):
        try:
            return BLOCK_ID[name_or_id]
        except KeyError:
            raise UnknownBlockError(f"unknown block name {name_or_id!r}")
    return check_block_id(name_or_id)


def check_blocks(blocks):
    """Validate every code in a voxel array; used on buffers arriving from outside the process."""
    if blocks.size and int(blocks.max()) >= len(BLOCKS):
        raise UnknownBlockError(f"voxel buffer holds unknown block code {int(blocks.max())}")
