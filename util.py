import numpy as np

from blocks import AIR, BLOCK_SOLID, BLOCK_COLORS

# Unit cube quads, 4 corners each, counter-clockwise seen from outside.
cb_v = np.array([
        [-1,+1,-1, -1,+1,+1, +1,+1,+1, +1,+1,-1],  # top
        [-1,-1,-1, +1,-1,-1, +1,-1,+1, -1,-1,+1],  # bottom
        [-1,-1,-1, -1,-1,+1, -1,+1,+1, -1,+1,-1],  # left
        [+1,-1,+1, +1,-1,-1, +1,+1,-1, +1,+1,+1],  # right
        [-1,-1,+1, +1,-1,+1, +1,+1,+1, -1,+1,+1],  # front
        [+1,-1,-1, -1,-1,-1, -1,+1,-1, +1,+1,-1],  # back
],dtype = np.float32)

# (dx, dy, dz) of the neighbor behind each face of cb_v
FACES = np.array([
        [ 0, 1, 0],
        [ 0,-1, 0],
        [-1, 0, 0],
        [ 1, 0, 0],
        [ 0, 0, 1],
        [ 0, 0,-1],
], dtype = np.int64)

# quad corners -> two triangles
QUAD_TRIS = np.array([0, 1, 2, 0, 2, 3], dtype = np.int64)


def exposed_faces(blocks, size):
    """ Boolean (6, z, y, x) mask of the faces of non-Air voxels that can be seen.

    A face is exposed when the neighbor behind it is outside the chunk or not solid.
    """
    b = np.asarray(blocks).reshape(size, size, size)
    present = b != AIR
    solid = np.pad(BLOCK_SOLID[b].astype(bool), 1, constant_values=False)
    out = np.empty((len(FACES),) + b.shape, dtype=bool)
    for i, (dx, dy, dz) in enumerate(FACES):
        neighbor = solid[1+dz:1+dz+size, 1+dy:1+dy+size, 1+dx:1+dx+size]
        out[i] = present & ~neighbor
    return out


def chunk_mesh(blocks, size, origin=(0, 0, 0)):
    """ Triangle soup for the visible faces of a chunk.

    Returns (positions, normals, colors), each a flat float32 array with 3
    components per vertex, in world space. Colors are 0-255 RGB.
    """
    b = np.asarray(blocks).reshape(size, size, size)
    mask = exposed_faces(b, size)
    positions = []
    normals = []
    colors = []
    ox, oy, oz = origin
    for face in range(len(FACES)):
        zs, ys, xs = np.nonzero(mask[face])
        if len(xs) == 0:
            continue
        centers = np.stack([xs + ox + 0.5, ys + oy + 0.5, zs + oz + 0.5], axis=1).astype(np.float32)
        quads = (0.5 * cb_v[face]).reshape(4, 3)[None, :, :] + centers[:, None, :]
        positions.append(quads[:, QUAD_TRIS, :].reshape(-1))
        normals.append(np.tile(FACES[face].astype(np.float32), len(xs) * len(QUAD_TRIS)))
        colors.append(np.repeat(BLOCK_COLORS[b[zs, ys, xs]], len(QUAD_TRIS), axis=0).reshape(-1))
    if not positions:
        empty = np.zeros(0, dtype=np.float32)
        return empty, empty.copy(), empty.copy()
    return (np.concatenate(positions).astype(np.float32),
            np.concatenate(normals).astype(np.float32),
            np.concatenate(colors).astype(np.float32))
