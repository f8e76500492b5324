"""Tile regions, network layer geometry and feature-map crop/stitch helpers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import numpy as np

FUSED_LAYERS_MAX = 16
PARTITIONS_W_MAX = 6
PARTITIONS_H_MAX = 6
PARTITIONS_MAX = 36


@dataclass(frozen=True)
class TileRegion:
    """An inclusive rectangle ``[w1, w2] x [h1, h2]`` on a feature map."""

    w1: int = 0
    h1: int = 0
    w2: int = -1
    h2: int = -1
    h: int = 0
    w: int = 0
    c: int = 0

    def describe(self) -> str:
        """Return a small text drawing of the region and its size."""
        return "\n".join(
            [
                f"tile size is ({self.w:3d},{self.h:3d}) ",
                f"({self.w1:3d},{self.h1:3d})--------|",
                "|----------------|",
                "|----------------|",
                f"|--------({self.w2:3d},{self.h2:3d})",
            ]
        )

    def is_empty(self) -> bool:
        """True when the region covers no pixels."""
        return self.w <= 0 or self.h <= 0


def make_region(w1: int, w2: int, h1: int, h2: int) -> TileRegion:
    """Build a region from its inclusive bounds, deriving width and height."""
    return TileRegion(w1=w1, h1=h1, w2=w2, h2=h2, h=h2 - h1 + 1, w=w2 - w1 + 1)


class LayerType(enum.Enum):
    """Kinds of layer that tiling treats differently."""

    CONVOLUTIONAL = "convolutional"
    MAXPOOL = "maxpool"
    OTHER = "other"


@dataclass(frozen=True)
class LayerParameters:
    """Geometry of one layer: its kind, stride, filter size and map shapes."""

    type: LayerType
    stride: int
    filter: int
    input_map: TileRegion
    output_map: TileRegion


@dataclass(frozen=True)
class NetworkParameters:
    """The ordered layer geometry of a network."""

    layers: tuple[LayerParameters, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "layers", tuple(self.layers))

    def __len__(self) -> int:
        return len(self.layers)


def relative_offsets(large: TileRegion, small: TileRegion) -> TileRegion:
    """Express ``small`` in coordinates relative to the origin of ``large``."""
    w1 = small.w1 - large.w1
    h1 = small.h1 - large.h1
    w2 = w1 + (small.w2 - small.w1)
    h2 = h1 + (small.h2 - small.h1)
    return make_region(w1, w2, h1, h2)


def _check_window(w: int, h: int, dw1: int, dw2: int, dh1: int, dh2: int) -> None:
    if not (0 <= dw1 <= dw2 < w):
        raise ValueError(f"width range [{dw1}, {dw2}] outside map of width {w}")
    if not (0 <= dh1 <= dh2 < h):
        raise ValueError(f"height range [{dh1}, {dh2}] outside map of height {h}")


def crop_feature_maps(data, w: int, h: int, c: int,
                      dw1: int, dw2: int, dh1: int, dh2: int) -> np.ndarray:
    """Copy the window ``[dw1, dw2] x [dh1, dh2]`` of a flat CHW map into a new flat array."""
    if c < 0:
        raise ValueError("channel count must not be negative")
    _check_window(w, h, dw1, dw2, dh1, dh2)
    flat = np.asarray(data, dtype=np.float32).ravel()
    needed = w * h * c
    if flat.size < needed:
        raise ValueError(f"feature map holds {flat.size} values, {needed} needed")
    maps = flat[:needed].reshape(c, h, w)
    return np.ascontiguousarray(maps[:, dh1:dh2 + 1, dw1:dw2 + 1]).ravel()


def stitch_feature_maps(data, output: np.ndarray, w: int, h: int, c: int,
                        dw1: int, dw2: int, dh1: int, dh2: int) -> np.ndarray:
    """Write a flat CHW tile into the window ``[dw1, dw2] x [dh1, dh2]`` of ``output``.

    ``output`` is a flat array of at least ``w * h * c`` values and is modified
    in place; it is also returned.
    """
    if not isinstance(output, np.ndarray):
        raise TypeError("output must be a numpy array")
    if c < 0:
        raise ValueError("channel count must not be negative")
    _check_window(w, h, dw1, dw2, dh1, dh2)
    in_w = dw2 - dw1 + 1
    in_h = dh2 - dh1 + 1
    tile = np.asarray(data, dtype=np.float32).ravel()
    tile_needed = in_w * in_h * c
    if tile.size < tile_needed:
        raise ValueError(f"tile holds {tile.size} values, {tile_needed} needed")
    out_needed = w * h * c
    if output.ndim != 1 or output.size < out_needed:
        raise ValueError(f"output must be flat with at least {out_needed} values")
    target = output[:out_needed].reshape(c, h, w)
    target[:, dh1:dh2 + 1, dw1:dw2 + 1] = tile[:tile_needed].reshape(c, in_h, in_w)
    return output