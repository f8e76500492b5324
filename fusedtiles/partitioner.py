"""Splitting a frame into tile tasks and merging tile results back into one map."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import numpy as np

from fusedtiles.ftp import FtpParameters, FtpReuseParameters
from fusedtiles.tiles import (
    LayerType,
    NetworkParameters,
    TileRegion,
    crop_feature_maps,
    relative_offsets,
    stitch_feature_maps,
)


@dataclass(frozen=True)
class Task:
    """A unit of work: one tile's data for one frame of one client."""

    task_id: int
    frame_num: int
    client_id: int
    data: np.ndarray = field(compare=False, repr=False)


@dataclass
class PartitionedFrame:
    """The tasks of a frame in queue order, and the shrunk inputs of reuse tasks."""

    frame_num: int
    tasks: list[Task]
    shrinked_inputs: dict[int, np.ndarray] = field(default_factory=dict)


def partition_frame(ftp_para: FtpParameters, net_para: NetworkParameters, frame,
                    frame_num: int, client_id: int,
                    reuse: FtpReuseParameters | None = None) -> PartitionedFrame:
    """Cut a flat CHW input frame into one task per tile.

    Tasks come in row-major order. With a reuse tiling, tasks that depend on
    their neighbours are moved behind the others, still with their full-size
    input so they can run alone; their shrunk inputs are recorded in ``reuse``
    and returned, and the frame's coverage marks are cleared.
    """
    in_map = net_para.layers[0].input_map

    def crop(tile: TileRegion) -> np.ndarray:
        return crop_feature_maps(frame, in_map.w, in_map.h, in_map.c,
                                 tile.w1, tile.w2, tile.h1, tile.h2)

    def make_task(task: int) -> Task:
        return Task(task_id=task, frame_num=frame_num, client_id=client_id,
                    data=crop(ftp_para.input_tiles[task][0]))

    order = [task for row in ftp_para.task_id for task in row]
    if reuse is None:
        return PartitionedFrame(frame_num=frame_num, tasks=[make_task(t) for t in order])

    if (reuse.partitions_h, reuse.partitions_w) != (ftp_para.partitions_h,
                                                    ftp_para.partitions_w):
        raise ValueError("reuse tiling does not match the plain tiling's grid")

    independent = [t for t in order if reuse.schedule[t] != 1]
    deferred = [t for t in order if reuse.schedule[t] == 1]
    tasks = [make_task(t) for t in independent] + [make_task(t) for t in deferred]

    reuse.clean_coverage(frame_num)
    shrinked = {t: crop(reuse.input_tiles[t][0]) for t in deferred}
    reuse.shrinked_input.update(shrinked)
    return PartitionedFrame(frame_num=frame_num, tasks=tasks, shrinked_inputs=shrinked)


def merge_results(ftp_para: FtpParameters, net_para: NetworkParameters,
                  frame_num: int, results: Iterable[Task]) -> np.ndarray:
    """Stitch the tile outputs of one frame into the last fused layer's full output.

    Results for other frames are skipped; the first ``partitions`` results of
    the frame are used.
    """
    last = ftp_para.fused_layers - 1
    layer = net_para.layers[last]
    out_map = layer.output_map
    merged = np.zeros(out_map.w * out_map.h * out_map.c, dtype=np.float32)
    collected = 0
    for result in results:
        if collected == ftp_para.partitions:
            break
        if result.frame_num != frame_num:
            continue
        collected += 1
        task = result.task_id
        ftp_para.grid_position(task)
        out_tile = ftp_para.output_tiles[task][last]
        if layer.type is LayerType.CONVOLUTIONAL:
            in_tile = ftp_para.input_tiles[task][last]
            offset = relative_offsets(in_tile, out_tile)
            tile_data = crop_feature_maps(result.data, in_tile.w, in_tile.h, out_map.c,
                                          offset.w1, offset.w2, offset.h1, offset.h2)
        else:
            tile_data = result.data
        stitch_feature_maps(tile_data, merged, out_map.w, out_map.h, out_map.c,
                            out_tile.w1, out_tile.w2, out_tile.h1, out_tile.h2)
    if collected < ftp_para.partitions:
        raise ValueError(
            f"only {collected} of {ftp_para.partitions} results for frame {frame_num}")
    return merged