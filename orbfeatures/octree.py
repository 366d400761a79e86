"""Spreading keypoints evenly over an image with a quadtree."""

from __future__ import annotations

import itertools
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from .keypoint import KeyPoint

Point = tuple[int, int]

_serials = itertools.count()


@dataclass(eq=False)
class ExtractorNode:
    """A rectangular cell of the quadtree and the keypoints inside it."""

    ul: Point
    ur: Point
    bl: Point
    br: Point
    keys: list[KeyPoint] = field(default_factory=list)
    no_more: bool = False
    _serial: int = field(default_factory=lambda: next(_serials), repr=False)

    def divide(self) -> tuple[ExtractorNode, ExtractorNode, ExtractorNode, ExtractorNode]:
        """Split into four quadrants and hand each keypoint to the one holding it."""
        half_x = math.ceil((self.ur[0] - self.ul[0]) / 2)
        half_y = math.ceil((self.br[1] - self.ul[1]) / 2)
        x0, y0 = self.ul
        mid = (x0 + half_x, y0 + half_y)

        n1 = ExtractorNode(self.ul, (mid[0], y0), (x0, mid[1]), mid)
        n2 = ExtractorNode(n1.ur, self.ur, n1.br, (self.ur[0], mid[1]))
        n3 = ExtractorNode(n1.bl, n1.br, self.bl, (n1.br[0], self.bl[1]))
        n4 = ExtractorNode(n3.ur, n2.br, n3.br, self.br)

        for kp in self.keys:
            left = kp.x < n1.ur[0]
            top = kp.y < n1.br[1]
            if left:
                (n1 if top else n3).keys.append(kp)
            else:
                (n2 if top else n4).keys.append(kp)

        children = (n1, n2, n3, n4)
        for child in children:
            child.no_more = len(child.keys) == 1
        return children


def _initial_nodes(keypoints: list[KeyPoint], width: int, height: int) -> list[ExtractorNode]:
    # Tall regions would round to zero columns; keep at least one.
    n_ini = max(1, math.floor(width / height + 0.5))
    h_x = width / n_ini
    nodes = []
    for i in range(n_ini):
        left = int(h_x * i)
        right = int(h_x * (i + 1))
        nodes.append(ExtractorNode((left, 0), (right, 0), (left, height), (right, height)))
    for kp in keypoints:
        index = min(max(int(kp.x / h_x), 0), n_ini - 1)
        nodes[index].keys.append(kp)
    kept = [node for node in nodes if node.keys]
    for node in kept:
        node.no_more = len(node.keys) == 1
    return kept


def _best(node: ExtractorNode) -> KeyPoint:
    best = node.keys[0]
    for kp in node.keys[1:]:
        if kp.response > best.response:
            best = kp
    return best


def distribute_octree(
    keypoints: Iterable[KeyPoint],
    min_x: int,
    max_x: int,
    min_y: int,
    max_y: int,
    n: int,
) -> list[KeyPoint]:
    """Subdivide the region until about ``n`` cells hold keypoints; keep the best of each.

    Keypoint coordinates are relative to ``(min_x, min_y)``. The result may
    hold more than ``n`` keypoints, since a round of splitting is never undone.
    """
    width = max_x - min_x
    height = max_y - min_y
    if width <= 0 or height <= 0:
        raise ValueError("the region must have a positive width and height")

    nodes: deque[ExtractorNode] = deque(_initial_nodes(list(keypoints), width, height))

    finished = False
    while not finished:
        prev_size = len(nodes)
        pushed: list[ExtractorNode] = []
        survivors: list[ExtractorNode] = []
        to_expand: list[ExtractorNode] = []
        for node in nodes:
            if node.no_more:
                survivors.append(node)
                continue
            for child in node.divide():
                if child.keys:
                    pushed.append(child)
                    if len(child.keys) > 1:
                        to_expand.append(child)
        nodes = deque(reversed(pushed))
        nodes.extend(survivors)

        if len(nodes) >= n or len(nodes) == prev_size:
            finished = True
        elif len(nodes) + 3 * len(to_expand) > n:
            while not finished:
                prev_size = len(nodes)
                candidates = sorted(to_expand, key=lambda nd: (len(nd.keys), nd._serial))
                to_expand = []
                for node in reversed(candidates):
                    for child in node.divide():
                        if child.keys:
                            nodes.appendleft(child)
                            if len(child.keys) > 1:
                                to_expand.append(child)
                    nodes.remove(node)
                    if len(nodes) >= n:
                        break
                if len(nodes) >= n or len(nodes) == prev_size:
                    finished = True

    return [_best(node) for node in nodes]