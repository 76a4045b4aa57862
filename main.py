import math
import sys

# pyglet imports
import pyglet
from pyglet.window import key
import pyglet.gl as gl
from pyglet.math import Mat4, Vec3

# local module imports
import config
import shaders
import renderer
import logutil
from chunk_stream import ChunkStreamManager
from server_connection import RemoteChunkSource
from config import TICKS_PER_SEC, FLYING_SPEED


class Window(pyglet.window.Window):

    def __init__(self, *args, **kwargs):
        super(Window, self).__init__(*args, **kwargs)

        # Whether or not the window exclusively captures the mouse.
        self.exclusive = False

        # First element is -1 when moving forward, 1 when moving back, and 0
        # otherwise. The second element is -1 when moving left, 1 when moving
        # right, and 0 otherwise.
        self.strafe = [0, 0]
        self.fly_climb = 0

        # Current (x, y, z) position in the world. The y-axis is vertical.
        self.position = tuple(getattr(config, 'CAMERA_INITIAL_POSITION', (0, 24, 0)))

        # (yaw, pitch) in degrees; pitch ranges from -90 (down) to 90 (up).
        self.rotation = (0, 0)

        self.block_program = shaders.create_block_shader()
        self.chunk_renderer = renderer.ChunkRenderer(self.block_program)
        source = None
        if config.SERVER_IP is not None:
            source = RemoteChunkSource(config.SERVER_IP, config.SERVER_PORT)
        self.stream = ChunkStreamManager(render=self.chunk_renderer, source=source)
        self.stream.update_observer(self.position)

        self.label = pyglet.text.Label('', font_name='Arial', font_size=12,
            x=10, y=self.height - 10, anchor_x='left', anchor_y='top',
            color=(0, 0, 0, 255))

        pyglet.clock.schedule_interval(self.update, 1.0 / TICKS_PER_SEC)

    def set_exclusive_mouse(self, exclusive):
        """ If `exclusive` is True, the window captures the mouse. """
        super(Window, self).set_exclusive_mouse(exclusive)
        self.exclusive = exclusive

    def get_sight_vector(self):
        """ Returns the current line of sight vector. """
        x, y = self.rotation
        m = math.cos(math.radians(y))
        dy = math.sin(math.radians(y))
        dx = math.cos(math.radians(x - 90)) * m
        dz = math.sin(math.radians(x - 90)) * m
        return (dx, dy, dz)

    def get_motion_vector(self):
        """ Returns the current flying velocity direction as (dx, dy, dz). """
        dx = dy = dz = 0.0
        if any(self.strafe):
            x, y = self.rotation
            strafe = math.degrees(math.atan2(*self.strafe))
            y_angle = math.radians(y)
            x_angle = math.radians(x + strafe)
            m = math.cos(y_angle)
            dy = math.sin(y_angle)
            if self.strafe[1]:
                # Moving left or right.
                dy = 0.0
                m = 1
            if self.strafe[0] > 0:
                # Moving backwards.
                dy *= -1
            dx = math.cos(x_angle) * m
            dz = math.sin(x_angle) * m
        if self.fly_climb != 0:
            dy = self.fly_climb
        return (dx, dy, dz)

    def update(self, dt):
        """ Scheduled by the pyglet clock: move the camera and stream chunks. """
        dx, dy, dz = self.get_motion_vector()
        d = dt * FLYING_SPEED
        x, y, z = self.position
        self.position = (x + dx * d, y + dy * d, z + dz * d)
        self.stream.update_observer(self.position)

    def on_mouse_press(self, x, y, button, modifiers):
        if not self.exclusive:
            self.set_exclusive_mouse(True)

    def on_mouse_motion(self, x, y, dx, dy):
        if self.exclusive:
            m = 0.15
            x, y = self.rotation
            x = x + dx * m
            y = max(-90, min(90, y + dy * m))
            self.rotation = (x, y)

    def on_key_press(self, symbol, modifiers):
        if symbol == key.W:
            self.strafe[0] -= 1
        elif symbol == key.S:
            self.strafe[0] += 1
        elif symbol == key.A:
            self.strafe[1] -= 1
        elif symbol == key.D:
            self.strafe[1] += 1
        elif symbol == key.SPACE:
            self.fly_climb += 1
        elif symbol == key.LSHIFT:
            self.fly_climb -= 1
        elif symbol == key.ESCAPE:
            self.set_exclusive_mouse(False)
            return pyglet.event.EVENT_HANDLED

    def on_key_release(self, symbol, modifiers):
        if symbol == key.W:
            self.strafe[0] += 1
        elif symbol == key.S:
            self.strafe[0] -= 1
        elif symbol == key.A:
            self.strafe[1] += 1
        elif symbol == key.D:
            self.strafe[1] -= 1
        elif symbol == key.SPACE:
            self.fly_climb -= 1
        elif symbol == key.LSHIFT:
            self.fly_climb += 1

    def on_close(self):
        self.stream.dispose()
        pyglet.window.Window.on_close(self)

    def get_view_projection(self):
        width, height = self.get_size()
        aspect = width / float(max(1, height))
        projection = Mat4.perspective_projection(aspect, 0.1, 512.0, 65)
        dx, dy, dz = self.get_sight_vector()
        forward = Vec3(dx, dy, dz).normalize()
        # view is defined in camera-relative space (camera at origin)
        view = Mat4.look_at(Vec3(0.0, 0.0, 0.0), forward, Vec3(0.0, 1.0, 0.0))
        return projection, view, self.position

    def on_draw(self):
        self.clear()
        width, height = self.get_size()
        gl.glEnable(gl.GL_DEPTH_TEST)
        gl.glViewport(0, 0, width, height)
        self.chunk_renderer.set_matrices(*self.get_view_projection())
        self.chunk_renderer.draw()
        gl.glDisable(gl.GL_DEPTH_TEST)
        self.draw_label()

    def draw_label(self):
        x, y, z = self.position
        s = self.stream
        self.label.text = '(%.1f, %.1f, %.1f) chunk %s resident %d loading %d remote %d local %d' % (
            x, y, z, s.center, len(s.resident), len(s.inflight),
            s.stat_remote_total, s.stat_fallback_total)
        self.label.y = self.height - 10
        self.label.draw()


def setup():
    """ Basic OpenGL configuration. """
    r, g, b = getattr(config, 'SKY_COLOR', (0.5, 0.69, 1.0))
    gl.glClearColor(r, g, b, 1)
    gl.glEnable(gl.GL_CULL_FACE)
    gl.glCullFace(gl.GL_BACK)


def main():
    if len(sys.argv)>1:
        arg = sys.argv[1]
        if ':' in arg:
            host, port = arg.split(':', 1)
            config.SERVER_IP = host
            try:
                config.SERVER_PORT = int(port)
            except ValueError:
                pass
        else:
            config.SERVER_IP = arg
        logutil.log("MAIN", f"Using chunk server {config.SERVER_IP}:{config.SERVER_PORT}")
    window = Window(width=800, height=600, caption='Voxel stream', resizable=True, vsync=True)
    window.set_exclusive_mouse(True)
    setup()
    try:
        pyglet.app.run()
    finally:
        window.stream.dispose()


if __name__ == '__main__':
    main()
