"""
Interactive window over a MolecularSession.

Contains MolecularViewerCanvas, a vispy canvas that draws every active layer
of the session as shaded point sprites for atoms and line segments for bonds.
Interaction pairs are drawn as coloured lines between visible atoms.
Layer arrays are uploaded to vertex buffers lazily and re-uploaded when the
layer's version changes; the buffers are released when the layer is disposed.

Keys: c cartoon, b ball-and-stick, s spacefill, k stick, l lines,
o orient, r reset, space toggles the animation timer.
"""

import logging
import math

import numpy as np
import OpenGL.GL as gl
from vispy import app
from vispy.gloo import Program, VertexBuffer

from . import config

logger = logging.getLogger(__name__)

sprite_vertex = """
uniform mat4 u_view;
uniform mat4 u_projection;
uniform float u_point_scale;

attribute vec3  a_position;
attribute vec3  a_color;
attribute float a_radius;
attribute float a_objid;

varying vec3 v_color;

void main (void)
{
    gl_Position = u_projection * u_view * vec4(a_position, 1.0);
    v_color = a_color;
    gl_PointSize = a_radius > 0.0 ? 2.0 * u_point_scale * a_radius / gl_Position.w : 0.0;
}
"""

sprite_fragment = """
varying vec3 v_color;

void main()
{
    vec2 p = gl_PointCoord * 2.0 - 1.0;
    float r2 = dot(p, p);
    if (r2 > 1.0) {
        discard;
    }
    float z = sqrt(1.0 - r2);
    float d = max(0.0, dot(normalize(vec3(-p.x, p.y, z)), normalize(vec3(0.3, 0.3, 1.0))));
    gl_FragColor = vec4(clamp(v_color * (0.25 + 0.75 * d), 0.0, 1.0), 1.0);
}
"""

line_vertex = """
uniform mat4 u_view;
uniform mat4 u_projection;

attribute vec3 a_position;
attribute vec3 a_color;

varying vec3 v_color;

void main (void)
{
    gl_Position = u_projection * u_view * vec4(a_position, 1.0);
    v_color = a_color;
}
"""

line_fragment = """
varying vec3 v_color;

void main()
{
    gl_FragColor = vec4(v_color, 1.0);
}
"""

line_dtype = [("a_position", np.float32, 3), ("a_color", np.float32, 3)]

key_representations = {
    "c": config.CARTOON,
    "b": config.BALL_AND_STICK,
    "s": config.SPACEFILL,
    "k": config.STICK,
    "l": config.LINES,
}


def make_line_vertices(layer):
    """Two vertices per drawn bond whose atoms are both shown."""
    segments = layer.segments
    if segments is None or not len(segments):
        return np.zeros(0, line_dtype)
    i = segments[:, 0].astype(np.int64)
    j = segments[:, 1].astype(np.int64)
    shown = layer.visible[i] & layer.visible[j]
    i, j = i[shown], j[shown]
    vertices = np.zeros(2 * len(i), line_dtype)
    vertices["a_position"][0::2] = layer.atom_data["a_position"][i]
    vertices["a_position"][1::2] = layer.atom_data["a_position"][j]
    vertices["a_color"][0::2] = layer.atom_data["a_color"][i]
    vertices["a_color"][1::2] = layer.atom_data["a_color"][j]
    return vertices


def make_interaction_vertices(positions, layer):
    """Two vertices per interaction pair whose atoms are both visible."""
    pairs = layer.pairs[layer.visible]
    vertices = np.zeros(2 * len(pairs), line_dtype)
    if not len(pairs):
        return vertices
    vertices["a_position"][0::2] = positions[pairs[:, 0]]
    vertices["a_position"][1::2] = positions[pairs[:, 1]]
    vertices["a_color"] = config.interaction_color(layer.kind)
    return vertices


class MolecularViewerCanvas(app.Canvas):
    """
    Main application window for a MolecularSession.

    Drag to rotate, scroll to zoom. Camera animations requested through the
    session are advanced from the canvas timer.
    """

    def __init__(self, session, title="molsync"):
        app.Canvas.__init__(self, title=title, keys="interactive", size=(800, 600))
        self.session = session
        self.sprite_program = Program(sprite_vertex, sprite_fragment)
        self.line_program = Program(line_vertex, line_fragment)
        self.buffers = {}
        self.interaction_buffers = {}
        self.session.interactions.on_dispose(self._release_interactions)
        self.mouse_press_pos = None
        self.timer = app.Timer("auto", connect=self.on_timer, start=True)

    def _release_layer(self, layer):
        entry = self.buffers.pop(id(layer), None)
        if entry is None:
            return
        _, atom_buffer, line_buffer, _ = entry
        atom_buffer.delete()
        if line_buffer is not None:
            line_buffer.delete()

    def _release_interactions(self, layer):
        entry = self.interaction_buffers.pop(id(layer), None)
        if entry is not None and entry[1] is not None:
            entry[1].delete()

    def _interaction_buffer(self, layer):
        entry = self.interaction_buffers.get(id(layer))
        if entry is not None and entry[0] == layer.version:
            return entry[1]
        self._release_interactions(layer)
        lines = make_interaction_vertices(self.session.model.positions, layer)
        line_buffer = VertexBuffer(lines) if len(lines) else None
        self.interaction_buffers[id(layer)] = (layer.version, line_buffer)
        return line_buffer

    def _layer_buffers(self, layer):
        entry = self.buffers.get(id(layer))
        if entry is not None and entry[0] == layer.version:
            return entry
        if entry is None:
            layer.on_dispose(self._release_layer)
        else:
            self._release_layer(layer)
        lines = make_line_vertices(layer)
        line_buffer = VertexBuffer(lines) if len(lines) else None
        entry = (layer.version, VertexBuffer(layer.atom_data), line_buffer, len(lines))
        self.buffers[id(layer)] = entry
        return entry

    def on_initialize(self, event):
        gl.glEnable(gl.GL_DEPTH_TEST)
        gl.glEnable(gl.GL_VERTEX_PROGRAM_POINT_SIZE)
        gl.glEnable(gl.GL_POINT_SPRITE)

    def on_key_press(self, event):
        if event.text == " ":
            if self.timer.running:
                self.timer.stop()
            else:
                self.timer.start()
        elif event.text in key_representations:
            self.session.change_representation(key_representations[event.text])
        elif event.text == "o":
            self.session.orient()
        elif event.text == "r":
            self.session.reset_all()
        self.update()

    def on_mouse_press(self, event):
        self.mouse_press_pos = event.pos

    def on_mouse_move(self, event):
        if event.is_dragging and self.mouse_press_pos is not None:
            dx = event.pos[0] - self.mouse_press_pos[0]
            dy = event.pos[1] - self.mouse_press_pos[1]
            self.session.turn_view("y", -dx * 0.5)
            self.session.turn_view("x", -dy * 0.5)
            self.mouse_press_pos = event.pos
            self.update()

    def on_mouse_wheel(self, event):
        self.session.zoom_by(-event.delta[1] * 2)
        self.update()

    def on_timer(self, event):
        if self.session.tick():
            self.update()

    def on_draw(self, event):
        width, height = self.physical_size
        camera = self.session.camera
        camera.resize(width, height)

        background = self.session.background or (0.0, 0.0, 0.0)
        gl.glClearColor(background[0], background[1], background[2], 1.0)
        gl.glClear(gl.GL_COLOR_BUFFER_BIT | gl.GL_DEPTH_BUFFER_BIT)
        gl.glViewport(0, 0, width, height)

        view = camera.view_matrix()
        projection = camera.projection_matrix()
        point_scale = height / (2.0 * math.tan(math.radians(camera.fov) / 2.0))

        for program in (self.sprite_program, self.line_program):
            program["u_view"] = view
            program["u_projection"] = projection
        self.sprite_program["u_point_scale"] = point_scale

        for layer in list(self.session.layers.values()):
            _, atom_buffer, line_buffer, n_line_vertex = self._layer_buffers(layer)
            self.sprite_program.bind(atom_buffer)
            self.sprite_program.draw("points")
            if line_buffer is not None and n_line_vertex:
                self.line_program.bind(line_buffer)
                self.line_program.draw("lines")

        for layer in list(self.session.interactions.layers.values()):
            line_buffer = self._interaction_buffer(layer)
            if line_buffer is not None:
                self.line_program.bind(line_buffer)
                self.line_program.draw("lines")
