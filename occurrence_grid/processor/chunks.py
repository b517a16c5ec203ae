import itertools as it
import math
from typing import Dict, Iterator, NamedTuple, Sequence, Tuple

import dask

from occurrence_grid.config import DIMENSIONS, MAX_CHUNK


class Span(NamedTuple):
    axis: str
    offset: int
    extent: int


class Window(tuple):
    """An offset+extent block of the grid, one span per axis in grid order"""

    def __new__(cls, spans: Sequence[Tuple[str, int, int]]):
        spans = tuple(Span(axis, int(offset), int(extent)) for axis, offset, extent in spans)
        return super().__new__(cls, spans)

    @property
    def axes(self) -> Tuple[str, ...]:
        return tuple(s.axis for s in self)

    @property
    def offsets(self) -> Tuple[int, ...]:
        return tuple(s.offset for s in self)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(s.extent for s in self)

    @property
    def size(self) -> int:
        return math.prod(self.shape)

    def slices(self) -> Tuple[slice, ...]:
        return tuple(slice(s.offset, s.offset + s.extent) for s in self)

    def region(self) -> Dict[str, slice]:
        return dict(zip(self.axes, self.slices()))

    def __repr__(self):
        inner = ", ".join(f"{s.axis}[{s.offset}:{s.offset + s.extent}]" for s in self)
        return f"Window({inner})"


def full_window(shape: Sequence[int]) -> Window:
    return Window((axis, 0, length) for axis, length in zip(DIMENSIONS, shape))


def iter_windows(shape: Sequence[int], chunks: Dict[str, int] = None) -> Iterator[Window]:
    """
    Yield windows that tile the grid exactly once.

    `chunks` maps an axis name to the window extent along that axis; axes
    that are not listed are taken whole. The last window along an axis is
    clipped to the axis length.
    """
    chunks = chunks or {}
    spans_per_axis = []
    for axis, length in zip(DIMENSIONS, shape):
        extent = max(1, min(chunks.get(axis, length), length))
        spans_per_axis.append(
            [(axis, offset, min(extent, length - offset)) for offset in range(0, length, extent)]
        )
    for spans in it.product(*spans_per_axis):
        yield Window(spans)


def count_windows(shape: Sequence[int], chunks: Dict[str, int] = None) -> int:
    chunks = chunks or {}
    return math.prod(
        math.ceil(length / max(1, min(chunks.get(axis, length), length)))
        for axis, length in zip(DIMENSIONS, shape)
    )


def _calc_chunks(shape: Sequence[int], itemsize: int, max_chunk: str = MAX_CHUNK) -> Dict[str, int]:
    """Shrink the outermost axes first until a window fits in max_chunk"""
    max_chunk_size = dask.utils.parse_bytes(max_chunk)
    extents = dict(zip(DIMENSIONS, shape))
    for axis in reversed(DIMENSIONS):
        total = math.prod(extents.values()) * itemsize
        if total <= max_chunk_size:
            break
        others = total // extents[axis]
        extents[axis] = max(1, max_chunk_size // others)
    return {
        axis: extent
        for (axis, extent), length in zip(extents.items(), shape)
        if extent < length
    }


def resolve_chunks(shape: Sequence[int], chunking, itemsize: int = 4) -> Dict[str, int]:
    """Translate recipe chunk options into per-axis window extents"""
    if chunking.chunks:
        return dict(chunking.chunks)
    if chunking.mode == "taxon":
        return {"aphiaid": 1}
    if chunking.mode == "cell":
        return {axis: 1 for axis in DIMENSIONS}
    if chunking.mode == "auto":
        return _calc_chunks(shape, itemsize, max_chunk=chunking.max_chunk)
    return {}


def storage_chunks(shape: Sequence[int], chunks: Dict[str, int] = None) -> Tuple[int, ...]:
    chunks = chunks or {}
    return tuple(
        max(1, min(chunks.get(axis, length), length))
        for axis, length in zip(DIMENSIONS, shape)
    )
