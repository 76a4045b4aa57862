import os
import sys

import numpy as np

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import mapgen
import util
from blocks import AIR, STONE, FLOWERS, BLOCK_COLORS

VERTS_PER_FACE = 6


def _faces(mesh):
    positions, normals, colors = mesh
    assert len(positions) == len(normals) == len(colors)
    return len(positions) // (3 * VERTS_PER_FACE)


def test_empty_chunk_has_no_faces():
    blocks = mapgen.fill_chunk(4, AIR)
    assert _faces(util.chunk_mesh(blocks, 4)) == 0


def test_single_block():
    blocks = mapgen.fill_chunk(4, AIR)
    blocks[1, 1, 1] = STONE
    positions, normals, colors = util.chunk_mesh(blocks.reshape(-1), 4, origin=(8, 0, -4))
    assert _faces((positions, normals, colors)) == 6
    p = positions.reshape(-1, 3)
    assert p.min(axis=0).tolist() == [9.0, 1.0, -3.0]
    assert p.max(axis=0).tolist() == [10.0, 2.0, -2.0]
    assert np.all(colors.reshape(-1, 3) == BLOCK_COLORS[STONE])


def test_shared_face_is_hidden():
    blocks = mapgen.fill_chunk(4, AIR)
    blocks[1, 1, 1] = STONE
    blocks[1, 1, 2] = STONE
    assert _faces(util.chunk_mesh(blocks, 4)) == 10


def test_non_solid_neighbor_does_not_hide():
    blocks = mapgen.fill_chunk(4, AIR)
    blocks[1, 1, 1] = STONE
    blocks[1, 1, 2] = FLOWERS[0]
    # the flower hides nothing, the stone hides one flower face
    assert _faces(util.chunk_mesh(blocks, 4)) == 11


def test_full_chunk_shows_only_its_shell():
    blocks = mapgen.fill_chunk(4, STONE)
    assert _faces(util.chunk_mesh(blocks, 4)) == 6 * 4 * 4
