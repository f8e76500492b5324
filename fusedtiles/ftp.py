"""Fused tile partitioning of a layer stack, with optional overlap reuse."""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass, field

import numpy as np

from fusedtiles.tiles import (
    FUSED_LAYERS_MAX,
    PARTITIONS_H_MAX,
    PARTITIONS_W_MAX,
    LayerType,
    NetworkParameters,
    TileRegion,
    make_region,
)

_FLOAT_BYTES = 4


class Position(enum.IntEnum):
    """Side of a tile on which a neighbour lies."""

    DOWN = 0
    RIGHT = 1
    UP = 2
    LEFT = 3

    def mirror(self) -> Position:
        """The opposite side."""
        return Position((self.value + 2) % 4)


def _empty_regions() -> dict[Position, TileRegion]:
    return {position: TileRegion() for position in Position}


@dataclass
class OverlappedTileData:
    """Regions of a tile's output that neighbours need, and their recorded data."""

    regions: dict[Position, TileRegion] = field(default_factory=_empty_regions)
    data: dict[Position, np.ndarray] = field(default_factory=dict)


@dataclass
class FtpParameters:
    """Per-task input and output tiles for every fused layer."""

    partitions_h: int
    partitions_w: int
    fused_layers: int
    task_id: tuple[tuple[int, ...], ...]
    input_tiles: list[list[TileRegion]]
    output_tiles: list[list[TileRegion]]

    @property
    def partitions(self) -> int:
        return self.partitions_h * self.partitions_w

    def task_at(self, row: int, col: int) -> int:
        """Task id of the tile in the given grid row and column."""
        if not (0 <= row < self.partitions_h and 0 <= col < self.partitions_w):
            raise IndexError(f"grid position ({row}, {col}) out of range")
        return self.task_id[row][col]

    def grid_position(self, task_id: int) -> tuple[int, int]:
        """Row and column of a task in the grid."""
        if not 0 <= task_id < self.partitions:
            raise IndexError(f"task id {task_id} out of range")
        return divmod(task_id, self.partitions_w)


@dataclass
class FtpReuseParameters(FtpParameters):
    """Tiling in which half the tiles take overlapped data from their neighbours."""

    schedule: tuple[int, ...] = ()
    output_reuse_regions: list[list[OverlappedTileData]] = field(default_factory=list)
    adjacent_reuse_data_size: list[int] = field(default_factory=list)
    self_reuse_data_size: list[int] = field(default_factory=list)
    shrinked_input: dict[int, np.ndarray] = field(default_factory=dict)
    coverage: set[tuple[int, int]] = field(default_factory=set)
    missing: set[tuple[int, int]] = field(default_factory=set)

    def adjacent_task_ids(self, task_id: int) -> dict[Position, int]:
        """Neighbouring task ids keyed by the side they lie on."""
        i, j = self.grid_position(task_id)
        adjacent: dict[Position, int] = {}
        if i + 1 < self.partitions_h:
            adjacent[Position.DOWN] = self.task_id[i + 1][j]
        if j + 1 < self.partitions_w:
            adjacent[Position.RIGHT] = self.task_id[i][j + 1]
        if i > 0:
            adjacent[Position.UP] = self.task_id[i - 1][j]
        if j > 0:
            adjacent[Position.LEFT] = self.task_id[i][j - 1]
        return adjacent

    def mark_covered(self, task_id: int, frame_num: int) -> None:
        self.grid_position(task_id)
        self.coverage.add((task_id, frame_num))

    def is_covered(self, task_id: int, frame_num: int) -> bool:
        self.grid_position(task_id)
        return (task_id, frame_num) in self.coverage

    def mark_missing(self, task_id: int, frame_num: int) -> None:
        self.grid_position(task_id)
        self.missing.add((task_id, frame_num))

    def is_missing(self, task_id: int, frame_num: int) -> bool:
        self.grid_position(task_id)
        return (task_id, frame_num) in self.missing

    def clean_coverage(self, frame_num: int) -> None:
        """Forget coverage and missing marks of every task for one frame."""
        self.coverage = {key for key in self.coverage if key[1] != frame_num}
        self.missing = {key for key in self.missing if key[1] != frame_num}

    def is_reuse_ready(self, task_id: int, frame_num: int) -> bool:
        """True when every neighbour of the task has been computed for the frame."""
        return all(
            self.is_covered(adjacent, frame_num)
            for adjacent in self.adjacent_task_ids(task_id).values()
        )

    def _remove_and_record(self, i: int, j: int, layer: int,
                           all_region: TileRegion) -> TileRegion:
        """Trim the neighbours' outputs off ``all_region`` and record them as reuse regions."""
        w1, w2, h1, h2 = all_region.w1, all_region.w2, all_region.h1, all_region.h2
        if j > 0:
            adjacent = self.task_id[i][j - 1]
            tile = self.output_tiles[adjacent][layer]
            w1 = tile.w2 + 1
            self.output_reuse_regions[adjacent][layer].regions[Position.RIGHT] = make_region(
                all_region.w1, tile.w2, all_region.h1, all_region.h2)
        if i > 0:
            adjacent = self.task_id[i - 1][j]
            tile = self.output_tiles[adjacent][layer]
            h1 = tile.h2 + 1
            self.output_reuse_regions[adjacent][layer].regions[Position.DOWN] = make_region(
                all_region.w1, all_region.w2, all_region.h1, tile.h2)
        if j + 1 < self.partitions_w:
            adjacent = self.task_id[i][j + 1]
            tile = self.output_tiles[adjacent][layer]
            w2 = tile.w1 - 1
            self.output_reuse_regions[adjacent][layer].regions[Position.LEFT] = make_region(
                tile.w1, all_region.w2, all_region.h1, all_region.h2)
        if i + 1 < self.partitions_h:
            adjacent = self.task_id[i + 1][j]
            tile = self.output_tiles[adjacent][layer]
            h2 = tile.h1 - 1
            self.output_reuse_regions[adjacent][layer].regions[Position.UP] = make_region(
                all_region.w1, all_region.w2, tile.h1, all_region.h2)
        return make_region(w1, w2, h1, h2)

    def _reuse_data_sizes(self, net_para: NetworkParameters, task_id: int) -> tuple[int, int]:
        """Bytes of overlap data a task receives from, and gives to, its neighbours."""
        adjacent = self.adjacent_task_ids(task_id)
        received = given = 0
        for layer in range(self.fused_layers - 1):
            channels = net_para.layers[layer].output_map.c
            for position, adjacent_id in adjacent.items():
                region = self.output_reuse_regions[adjacent_id][layer].regions[position.mirror()]
                if not region.is_empty():
                    received += _FLOAT_BYTES * region.w * region.h * channels
                region = self.output_reuse_regions[task_id][layer].regions[position]
                if not region.is_empty():
                    given += _FLOAT_BYTES * region.w * region.h * channels
        return received, given


def traversal(net_para: NetworkParameters, output: TileRegion, layer: int) -> TileRegion:
    """The input region a layer reads to produce the given output region."""
    params = net_para.layers[layer]
    stride = params.stride
    if params.type is LayerType.CONVOLUTIONAL:
        half = params.filter // 2
        w1 = max(output.w1 * stride - half, 0)
        w2 = min(output.w2 * stride + half, params.input_map.w - 1)
        h1 = max(output.h1 * stride - half, 0)
        h2 = min(output.h2 * stride + half, params.input_map.h - 1)
    elif params.type is LayerType.MAXPOOL:
        w1 = output.w1 * stride
        w2 = output.w2 * stride + stride - 1
        h1 = output.h1 * stride
        h2 = output.h2 * stride + stride - 1
    else:
        raise ValueError(f"layer {layer} of type {params.type.value} cannot be tiled")
    return make_region(w1, w2, h1, h2)


def _split(length: int, parts: int) -> Iterator[tuple[int, int]]:
    stride = -(-length // parts)
    start, end = 0, stride - 1
    for k in range(parts):
        yield start, end
        start = end + 1
        end = length - 1 if k == parts - 2 else end + stride


def _check_grid(n: int, m: int) -> None:
    if not 1 <= n <= PARTITIONS_H_MAX:
        raise ValueError(f"row partitions must be between 1 and {PARTITIONS_H_MAX}")
    if not 1 <= m <= PARTITIONS_W_MAX:
        raise ValueError(f"column partitions must be between 1 and {PARTITIONS_W_MAX}")


def perform_ftp(n: int, m: int, fused_layers: int,
                net_para: NetworkParameters) -> FtpParameters:
    """Split the last fused layer's output into an ``n`` by ``m`` grid and trace tiles back."""
    _check_grid(n, m)
    if not 1 <= fused_layers <= min(FUSED_LAYERS_MAX, len(net_para)):
        raise ValueError(f"cannot fuse {fused_layers} layers of a {len(net_para)}-layer network")
    task_id = tuple(tuple(i * m + j for j in range(m)) for i in range(n))
    last = fused_layers - 1
    out_map = net_para.layers[last].output_map
    input_tiles: list[list[TileRegion]] = [[TileRegion()] * fused_layers for _ in range(n * m)]
    output_tiles: list[list[TileRegion]] = [[TileRegion()] * fused_layers for _ in range(n * m)]
    for i, (h1, h2) in enumerate(_split(out_map.h, n)):
        for j, (w1, w2) in enumerate(_split(out_map.w, m)):
            output_tiles[task_id[i][j]][last] = make_region(w1, w2, h1, h2)
    for row in task_id:
        for task in row:
            for layer in reversed(range(fused_layers)):
                input_tiles[task][layer] = traversal(net_para, output_tiles[task][layer], layer)
                if layer > 0:
                    output_tiles[task][layer - 1] = input_tiles[task][layer]
    return FtpParameters(
        partitions_h=n,
        partitions_w=m,
        fused_layers=fused_layers,
        task_id=task_id,
        input_tiles=input_tiles,
        output_tiles=output_tiles,
    )


def reuse_aware_schedule(partitions_h: int, partitions_w: int) -> tuple[int, ...]:
    """Checkerboard dependency levels indexed by row-major task id.

    Level 0 tiles have no dependency; level 1 tiles use data produced by level 0 tiles.
    """
    _check_grid(partitions_h, partitions_w)
    return tuple((i + j) % 2 for i in range(partitions_h) for j in range(partitions_w))


def perform_ftp_reuse(net_para: NetworkParameters, ftp_para: FtpParameters) -> FtpReuseParameters:
    """Derive the reuse-aware tiling from a plain one made by :func:`perform_ftp`."""
    h, w, fused = ftp_para.partitions_h, ftp_para.partitions_w, ftp_para.fused_layers
    schedule = reuse_aware_schedule(h, w)
    last = fused - 1
    partitions = h * w
    input_tiles: list[list[TileRegion]] = [[TileRegion()] * fused for _ in range(partitions)]
    output_tiles: list[list[TileRegion]] = [[TileRegion()] * fused for _ in range(partitions)]
    for task in range(partitions):
        output_tiles[task][last] = ftp_para.output_tiles[task][last]
        if schedule[task] == 0:
            input_tiles[task] = list(ftp_para.input_tiles[task])
            output_tiles[task] = list(ftp_para.output_tiles[task])
    reuse = FtpReuseParameters(
        partitions_h=h,
        partitions_w=w,
        fused_layers=fused,
        task_id=tuple(tuple(row) for row in ftp_para.task_id),
        input_tiles=input_tiles,
        output_tiles=output_tiles,
        schedule=schedule,
        output_reuse_regions=[[OverlappedTileData() for _ in range(fused)]
                              for _ in range(partitions)],
    )
    for i in range(h):
        for j in range(w):
            task = reuse.task_id[i][j]
            if schedule[task] != 1:
                continue
            for layer in reversed(range(fused)):
                reuse.input_tiles[task][layer] = traversal(
                    net_para, reuse.output_tiles[task][layer], layer)
                if layer > 0:
                    reuse.output_tiles[task][layer - 1] = reuse._remove_and_record(
                        i, j, layer - 1, reuse.input_tiles[task][layer])
    sizes = [reuse._reuse_data_sizes(net_para, task) for task in range(partitions)]
    reuse.adjacent_reuse_data_size = [received for received, _ in sizes]
    reuse.self_reuse_data_size = [given for _, given in sizes]
    return reuse