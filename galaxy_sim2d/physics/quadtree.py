"""
Barnes-Hut quadtree for 2D gravitational force approximation.

The tree is rebuilt from scratch every step:
1. Insert every body whose position lies inside the root region. Bodies
   outside the root are silently dropped (counted in ``Quadtree.dropped``).
2. Aggregate total mass and center of mass bottom-up.
3. For each body, walk the tree and treat a node as a single point mass when
   it is a leaf or when ``node.width / distance < theta``.

Nodes live in a flat arena (``Quadtree.nodes``) and refer to their children by
index, so discarding a tree is a single list drop.

Constants:
    MAX_DEPTH: Depth at which a node stops subdividing and becomes a bucket
    MIN_CELL_SIZE: Width at or below which a node stops subdividing

Example:
    >>> from galaxy_sim2d.core.bodies import Body
    >>> bodies = [Body(1.0, -1.0, 0.0), Body(1.0, 1.0, 0.0)]
    >>> tree = Quadtree.build(bodies, (-10.0, -10.0, 20.0, 20.0))
    >>> tree.aggregate()
    >>> tree.root.total_mass
    2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Sequence

from galaxy_sim2d.core.bodies import Body
from galaxy_sim2d.physics.integrator import kick


MAX_DEPTH = 32
MIN_CELL_SIZE = 1e-6


@dataclass(slots=True)
class QuadNode:
    """
    One axis-aligned region of the tree.

    The region is half-open: ``[left, right) x [top, bottom)``. Siblings share
    their split edges exactly, so every point inside a parent lies in exactly
    one child.

    Attributes:
        children: Arena indices of the four quadrants (top-left, top-right,
            bottom-left, bottom-right), or None for a leaf
        occupant: Point index stored in this leaf
        bucket: Further point indices, only on leaves that may not subdivide
        total_mass, com_x, com_y: Aggregates, valid after ``Quadtree.aggregate``
    """
    left: float
    top: float
    right: float
    bottom: float
    depth: int = 0
    children: tuple[int, int, int, int] | None = None
    occupant: int | None = None
    bucket: list[int] | None = None

    total_mass: float = 0.0
    com_x: float = 0.0
    com_y: float = 0.0

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def is_leaf(self) -> bool:
        return self.children is None

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x < self.right and self.top <= y < self.bottom

    def occupants(self) -> list[int]:
        if self.occupant is None:
            return []
        if self.bucket:
            return [self.occupant, *self.bucket]
        return [self.occupant]


class Quadtree:
    def __init__(
        self,
        bounds: tuple[float, float, float, float],
        *,
        max_depth: int = MAX_DEPTH,
        min_cell_size: float = MIN_CELL_SIZE,
    ) -> None:
        left, top, width, height = bounds
        self.nodes: list[QuadNode] = [QuadNode(left, top, left + width, top + height)]
        self.max_depth = max_depth
        self.min_cell_size = min_cell_size
        # point payload captured at insertion; later body mutation never leaks in
        self._ms: list[float] = []
        self._xs: list[float] = []
        self._ys: list[float] = []
        self.dropped = 0
        self._aggregated = False

    @classmethod
    def build(
        cls,
        bodies: Sequence[Body],
        bounds: tuple[float, float, float, float],
        *,
        max_depth: int = MAX_DEPTH,
        min_cell_size: float = MIN_CELL_SIZE,
    ) -> "Quadtree":
        tree = cls(bounds, max_depth=max_depth, min_cell_size=min_cell_size)
        for b in bodies:
            tree.insert(b.mass, b.x, b.y)
        return tree

    @property
    def root(self) -> QuadNode:
        return self.nodes[0]

    @property
    def inserted(self) -> int:
        return len(self._ms)

    def node_count(self) -> int:
        return len(self.nodes)

    def iter_nodes(self) -> Iterator[QuadNode]:
        return iter(self.nodes)

    def point(self, idx: int) -> tuple[float, float, float]:
        """(mass, x, y) of an inserted point."""
        return self._ms[idx], self._xs[idx], self._ys[idx]

    def insert(self, mass: float, x: float, y: float) -> int | None:
        """
        Insert a point mass. Returns its point index, or None when the point
        lies outside the root region and was dropped.
        """
        if not self.root.contains(x, y):
            self.dropped += 1
            return None
        idx = len(self._ms)
        self._ms.append(float(mass))
        self._xs.append(float(x))
        self._ys.append(float(y))
        self._aggregated = False
        self._insert(0, idx)
        return idx

    def _terminal(self, node: QuadNode) -> bool:
        return (
            node.depth >= self.max_depth
            or node.width <= self.min_cell_size
            or node.height <= self.min_cell_size
        )

    def _insert(self, ni: int, idx: int) -> None:
        node = self.nodes[ni]
        if not node.contains(self._xs[idx], self._ys[idx]):
            return

        if node.children is None:
            if node.occupant is None:
                node.occupant = idx
                return

            # coincident or near-coincident points stop splitting here
            if self._terminal(node):
                if node.bucket is None:
                    node.bucket = []
                node.bucket.append(idx)
                return

            children = self.subdivide(ni)
            dislodged = node.occupant
            node.occupant = None
            for c in children:
                self._insert(c, dislodged)

        assert node.children is not None
        # every quadrant is probed; containment lets exactly one accept
        for c in node.children:
            self._insert(c, idx)

    def subdivide(self, ni: int) -> tuple[int, int, int, int]:
        node = self.nodes[ni]
        if node.children is not None:
            return node.children
        mx = node.left + node.width / 2.0
        my = node.top + node.height / 2.0
        d = node.depth + 1
        base = len(self.nodes)
        self.nodes.append(QuadNode(node.left, node.top, mx, my, d))
        self.nodes.append(QuadNode(mx, node.top, node.right, my, d))
        self.nodes.append(QuadNode(node.left, my, mx, node.bottom, d))
        self.nodes.append(QuadNode(mx, my, node.right, node.bottom, d))
        node.children = (base, base + 1, base + 2, base + 3)
        return node.children

    def aggregate(self) -> None:
        self._aggregate(0)
        self._aggregated = True

    def _aggregate(self, ni: int) -> None:
        node = self.nodes[ni]
        if node.children is None:
            ids = node.occupants()
            if not ids:
                node.total_mass = 0.0
                node.com_x = node.com_y = 0.0
                return
            if len(ids) == 1:
                # exact copy so a body can recognise its own leaf
                node.total_mass = self._ms[ids[0]]
                node.com_x = self._xs[ids[0]]
                node.com_y = self._ys[ids[0]]
                return
            m = mx = my = 0.0
            for j in ids:
                mj = self._ms[j]
                m += mj
                mx += self._xs[j] * mj
                my += self._ys[j] * mj
            node.total_mass = m
            node.com_x = mx / m
            node.com_y = my / m
            return

        m = mx = my = 0.0
        for c in node.children:
            self._aggregate(c)
            ch = self.nodes[c]
            m += ch.total_mass
            mx += ch.com_x * ch.total_mass
            my += ch.com_y * ch.total_mass
        node.total_mass = m
        if m > 0.0:
            node.com_x = mx / m
            node.com_y = my / m
        else:
            node.com_x = node.com_y = 0.0

    def apply_force(
        self,
        body: Body,
        *,
        theta: float,
        gravity_constant: float,
        softening: float,
        timestep: float,
    ) -> int:
        """
        Walk the tree for one body, adding ``a * timestep`` to its velocity at
        every accepted node. Returns the number of nodes visited.

        Read-only on the tree; only ``body`` is mutated.
        """
        if not self._aggregated:
            raise RuntimeError("aggregate() must run before force queries")
        return self._force(0, body, theta, gravity_constant, softening * softening, timestep)

    def _force(self, ni: int, body: Body, theta: float, g: float, s2: float, dt: float) -> int:
        node = self.nodes[ni]
        if node.total_mass == 0.0:
            return 1

        if node.bucket:
            for j in node.occupants():
                xj, yj = self._xs[j], self._ys[j]
                if xj == body.x and yj == body.y:
                    continue
                dx = xj - body.x
                dy = yj - body.y
                dist = math.sqrt(dx * dx + dy * dy + s2)
                _pull(body, dx, dy, dist, self._ms[j], g, s2, dt)
            return 1

        if body.x == node.com_x and body.y == node.com_y:
            return 1

        dx = node.com_x - body.x
        dy = node.com_y - body.y
        dist = math.sqrt(dx * dx + dy * dy + s2)

        ratio = node.width / dist
        if node.children is None or ratio < theta:
            _pull(body, dx, dy, dist, node.total_mass, g, s2, dt)
            return 1

        visited = 1
        for c in node.children:
            visited += self._force(c, body, theta, g, s2, dt)
        return visited

    def leaf_of(self, idx: int) -> QuadNode | None:
        """Return the leaf storing point ``idx``, or None if it is not stored."""
        x, y = self._xs[idx], self._ys[idx]
        node = self.root
        while node.children is not None:
            for c in node.children:
                ch = self.nodes[c]
                if ch.contains(x, y):
                    node = ch
                    break
            else:
                return None
        return node if idx in node.occupants() else None

    def depth(self) -> int:
        return max(n.depth for n in self.nodes)


def _pull(body: Body, dx: float, dy: float, dist: float, mass: float, g: float, s2: float, dt: float) -> None:
    # softening enters twice: once in dist, once in the force denominator
    force = g * mass * body.mass / (dist * dist + s2)
    f = force / body.mass / dist
    kick(body, dx * f, dy * f, dt)
