'''
shaders.py -- GLSL program for flat-colored voxel chunks

Chunks carry no textures: each vertex has a block color and the face normal.
Faces are shaded by direction (tops brightest, bottoms darkest) and fade into
the sky color between u_fog_start and u_fog_end, measured horizontally from
the camera so chunks fade out at the streaming edge regardless of height.
'''
from pyglet.graphics.shader import Shader, ShaderProgram


CHUNK_VERTEX_SOURCE = """
#version 330 core

uniform mat4 u_projection;
uniform mat4 u_view;
uniform vec3 u_camera_pos;
uniform float u_fog_start;
uniform float u_fog_end;

in vec3 position;
in vec3 normal;
in vec3 color;

out vec3 v_color;
out float v_fog;

const vec3 FACE_SHADE = vec3(0.8, 1.0, 0.65); // x sides, top, z sides

void main() {
    vec3 rel = position - u_camera_pos;
    gl_Position = u_projection * u_view * vec4(rel, 1.0);

    vec3 n = abs(normal);
    float shade = dot(n, FACE_SHADE);
    if (normal.y < 0.0) {
        shade = 0.5;
    }
    v_color = color / 255.0 * shade;

    float reach = length(rel.xz);
    v_fog = clamp((reach - u_fog_start) / max(u_fog_end - u_fog_start, 1e-3), 0.0, 1.0);
}
"""


CHUNK_FRAGMENT_SOURCE = """
#version 330 core

uniform vec3 u_fog_color;

in vec3 v_color;
in float v_fog;

out vec4 out_color;

void main() {
    out_color = vec4(mix(v_color, u_fog_color, v_fog), 1.0);
}
"""


def create_block_shader():
    """Compile the chunk program (position, normal, color attributes)."""
    return ShaderProgram(
        Shader(CHUNK_VERTEX_SOURCE, "vertex"),
        Shader(CHUNK_FRAGMENT_SOURCE, "fragment"),
    )
