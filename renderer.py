import numpy as np
import pyglet
import pyglet.gl as gl

import config
import util


class ChunkRenderer(object):
    '''
    Render collaborator for ChunkStreamManager

    Calling it with a chunk uploads the chunk's visible faces into a shared
    batch and returns (vertex_list, dispose). Chunks with nothing visible get
    no vertex list.
    '''
    def __init__(self, program):
        self.program = program
        self.batch = pyglet.graphics.Batch()
        self.group = pyglet.graphics.ShaderGroup(program)
        self.program['u_fog_color'] = getattr(config, 'SKY_COLOR', (0.5, 0.69, 1.0))
        self.program['u_fog_start'] = getattr(config, 'FOG_START', 60.0)
        self.program['u_fog_end'] = getattr(config, 'FOG_END', 110.0)
        self.chunks_uploaded = 0

    def __call__(self, blocks, size, origin):
        positions, normals, colors = util.chunk_mesh(blocks, size, origin)
        count = len(positions) // 3
        if count == 0:
            return None, _nothing
        vertex_list = self.program.vertex_list(
            count,
            gl.GL_TRIANGLES,
            batch=self.batch,
            group=self.group,
            position=('f', positions),
            normal=('f', normals),
            color=('f', colors),
        )
        self.chunks_uploaded += 1
        return vertex_list, vertex_list.delete

    def set_matrices(self, projection, view, camera_pos):
        # Convert pyglet Mat4 to column-major numpy arrays
        proj = np.array(list(projection), dtype='f4').reshape((4, 4), order='F')
        view_mat = np.array(list(view), dtype='f4').reshape((4, 4), order='F')
        # The shader subtracts u_camera_pos itself, so drop the view translation.
        view_mat[3, :3] = 0.0
        self.program['u_projection'] = proj.ravel(order='F')
        self.program['u_view'] = view_mat.ravel(order='F')
        self.program['u_camera_pos'] = tuple(camera_pos)

    def draw(self):
        self.batch.draw()


def _nothing():
    pass
