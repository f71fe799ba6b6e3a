"""
Spatial hashing for close-pair detection in 3D.

Space is divided into cubic cells of side `div`; two points can only be
closer than `div` if their cells are neighbours, so close_pairs() only
compares points in the 27 surrounding cells.
"""

import numpy as np


class SpaceHash:
    """
    3D spatial hash over an (n, 3) array of points.

    Args:
        vertices: points as an (n, 3) array-like
        div: cell size, at least the largest distance of interest
        padding: extra space around the bounding box
    """

    def __init__(self, vertices, div=5.3, padding=0.05):
        self.vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        self.div = div
        self.inv_div = 1.0 / div
        self.padding = padding

        if len(self.vertices):
            self.minima = self.vertices.min(axis=0) - padding
            self.maxima = self.vertices.max(axis=0) + padding
        else:
            self.minima = np.zeros(3)
            self.maxima = np.zeros(3)
        self.sizes = np.maximum(np.ceil((self.maxima - self.minima) * self.inv_div), 1).astype(int)

        self.spaces = ((self.vertices - self.minima) * self.inv_div).astype(int)
        self.cells = {}
        for i_vertex, space in enumerate(self.spaces):
            self.cells.setdefault(self.space_to_hash(space), []).append(i_vertex)

    def space_to_hash(self, s):
        return (int(s[0]) * self.sizes[1] + int(s[1])) * self.sizes[2] + int(s[2])

    def neighbourhood(self, space):
        def neighbourhood_in_dim(i_dim):
            return range(max(0, space[i_dim] - 1), min(self.sizes[i_dim], space[i_dim] + 2))

        for s0 in neighbourhood_in_dim(0):
            for s1 in neighbourhood_in_dim(1):
                for s2 in neighbourhood_in_dim(2):
                    yield (s0, s1, s2)

    def close_pairs(self):
        """Yield candidate pairs (i, j), i < j, sharing or neighbouring a cell."""
        for i_vertex0, space0 in enumerate(self.spaces):
            for space1 in self.neighbourhood(space0):
                for i_vertex1 in self.cells.get(self.space_to_hash(space1), []):
                    if i_vertex0 < i_vertex1:
                        yield i_vertex0, i_vertex1
