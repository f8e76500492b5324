"""Exchange of overlapped tile outputs between neighbouring partitions."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

import numpy as np

from fusedtiles.ftp import FtpReuseParameters, Position
from fusedtiles.tiles import (
    LayerType,
    NetworkParameters,
    crop_feature_maps,
    relative_offsets,
    stitch_feature_maps,
)

Requirements = Mapping[Position, bool]
ReceivedData = dict[Position, dict[int, np.ndarray]]


def check_local_coverage(reuse: FtpReuseParameters, task_id: int,
                         frame_num: int) -> dict[Position, bool]:
    """Sides whose neighbour has not yet been computed locally for the frame."""
    adjacent = reuse.adjacent_task_ids(task_id)
    return {
        position: position in adjacent and not reuse.is_covered(adjacent[position], frame_num)
        for position in Position
    }


def check_missing_coverage(reuse: FtpReuseParameters, task_id: int,
                           frame_num: int) -> dict[Position, bool]:
    """Sides whose neighbour was computed elsewhere, so its data must be fetched."""
    adjacent = reuse.adjacent_task_ids(task_id)
    return {
        position: position in adjacent and reuse.is_missing(adjacent[position], frame_num)
        for position in Position
    }


def need_reuse_data_from_gateway(required: Requirements) -> bool:
    """True when at least one side needs data from elsewhere."""
    return any(required.values())


def format_reuse_requirements(required: Requirements) -> str:
    """Describe, side by side, which neighbours' data is needed."""
    labels = {
        Position.DOWN: "Down",
        Position.RIGHT: "Right--->",
        Position.UP: "Up",
        Position.LEFT: "<---Left",
    }
    return "\n".join(
        f"{labels[position]} {int(bool(required.get(position, False)))}"
        for position in Position
    )


def _adjacent_overlaps(reuse: FtpReuseParameters, task_id: int,
                       required: Requirements) -> Iterator[tuple[int, Position, int, Position]]:
    """Yield ``(layer, position, neighbour, mirror)`` for every non-empty wanted overlap."""
    adjacent = reuse.adjacent_task_ids(task_id)
    for layer in range(reuse.fused_layers - 1):
        for position in Position:
            if position not in adjacent or not required.get(position, False):
                continue
            neighbour = adjacent[position]
            mirror = position.mirror()
            region = reuse.output_reuse_regions[neighbour][layer].regions[mirror]
            if not region.is_empty():
                yield layer, position, neighbour, mirror


def _element_count(reuse: FtpReuseParameters, net_para: NetworkParameters,
                   task_id: int, layer: int, position: Position) -> int:
    region = reuse.output_reuse_regions[task_id][layer].regions[position]
    return region.w * region.h * net_para.layers[layer].output_map.c


def _recorded(reuse: FtpReuseParameters, task_id: int, layer: int,
              position: Position, count: int) -> np.ndarray:
    data = reuse.output_reuse_regions[task_id][layer].data.get(position)
    if data is None or data.size < count:
        raise ValueError(
            f"no overlap data recorded for task {task_id}, layer {layer}, "
            f"side {position.name.lower()}")
    return np.asarray(data, dtype=np.float32)[:count]


def serialize_adjacent_reuse_data(reuse: FtpReuseParameters, net_para: NetworkParameters,
                                  task_id: int, required: Requirements) -> np.ndarray:
    """Pack the neighbours' overlap data that a task needs into one flat array."""
    chunks = [
        _recorded(reuse, neighbour, layer, mirror,
                  _element_count(reuse, net_para, neighbour, layer, mirror))
        for layer, _, neighbour, mirror in _adjacent_overlaps(reuse, task_id, required)
    ]
    if not chunks:
        return np.empty(0, dtype=np.float32)
    return np.concatenate(chunks).astype(np.float32, copy=False)


def deserialize_adjacent_reuse_data(reuse: FtpReuseParameters, net_para: NetworkParameters,
                                    task_id: int, payload,
                                    required: Requirements) -> ReceivedData:
    """Split a packed payload back into per-side, per-layer overlap data."""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        flat = np.frombuffer(bytes(payload), dtype=np.float32)
    else:
        flat = np.asarray(payload, dtype=np.float32).ravel()
    received: ReceivedData = {position: {} for position in Position}
    offset = 0
    for layer, position, neighbour, mirror in _adjacent_overlaps(reuse, task_id, required):
        count = _element_count(reuse, net_para, neighbour, layer, mirror)
        if offset + count > flat.size:
            raise ValueError(
                f"payload holds {flat.size} values, more than that are needed")
        received[position][layer] = flat[offset:offset + count].copy()
        offset += count
    return received


def place_adjacent_deserialized_data(reuse: FtpReuseParameters, task_id: int,
                                     received: ReceivedData,
                                     required: Requirements) -> None:
    """Store received overlap data as if the neighbours had recorded it locally."""
    for layer, position, neighbour, mirror in _adjacent_overlaps(reuse, task_id, required):
        try:
            data = received[position][layer]
        except KeyError:
            raise ValueError(
                f"no data received for side {position.name.lower()}, layer {layer}") from None
        reuse.output_reuse_regions[neighbour][layer].data[mirror] = data


def serialize_self_reuse_data(reuse: FtpReuseParameters, net_para: NetworkParameters,
                              task_id: int) -> np.ndarray:
    """Pack the overlap data a task produced for its neighbours, deepest layer first."""
    adjacent = reuse.adjacent_task_ids(task_id)
    chunks = []
    for layer in reversed(range(reuse.fused_layers - 1)):
        for position in reversed(Position):
            if position not in adjacent:
                continue
            region = reuse.output_reuse_regions[task_id][layer].regions[position]
            if region.is_empty():
                continue
            count = _element_count(reuse, net_para, task_id, layer, position)
            chunks.append(_recorded(reuse, task_id, layer, position, count))
    if not chunks:
        return np.empty(0, dtype=np.float32)
    return np.concatenate(chunks).astype(np.float32, copy=False)


def record_overlapped_output(reuse: FtpReuseParameters, net_para: NetworkParameters,
                             task_id: int, layer: int, layer_output) -> None:
    """Keep the parts of a layer's tile output that neighbours will reuse."""
    tile = reuse.output_tiles[task_id][layer]
    channels = net_para.layers[layer].output_map.c
    overlap = reuse.output_reuse_regions[task_id][layer]
    for position in Position:
        region = overlap.regions[position]
        if region.is_empty():
            continue
        offset = relative_offsets(tile, region)
        overlap.data[position] = crop_feature_maps(
            layer_output, tile.w, tile.h, channels,
            offset.w1, offset.w2, offset.h1, offset.h2)


def stitch_reuse_output(reuse: FtpReuseParameters, net_para: NetworkParameters,
                        task_id: int, layer: int, layer_output) -> np.ndarray:
    """Assemble the next layer's input tile from own output and neighbours' overlaps."""
    if not 0 <= layer < reuse.fused_layers - 1:
        raise ValueError(f"layer {layer} has no following fused layer")
    next_input = reuse.input_tiles[task_id][layer + 1]
    channels = net_para.layers[layer].output_map.c
    stitched = np.zeros(next_input.w * next_input.h * channels, dtype=np.float32)
    offset = relative_offsets(next_input, reuse.output_tiles[task_id][layer])
    stitch_feature_maps(layer_output, stitched, next_input.w, next_input.h, channels,
                        offset.w1, offset.w2, offset.h1, offset.h2)
    if net_para.layers[layer + 1].type is LayerType.MAXPOOL:
        return stitched
    for position, neighbour in reuse.adjacent_task_ids(task_id).items():
        mirror = position.mirror()
        overlap = reuse.output_reuse_regions[neighbour][layer]
        region = overlap.regions[mirror]
        if region.is_empty():
            continue
        count = region.w * region.h * channels
        data = _recorded(reuse, neighbour, layer, mirror, count)
        offset = relative_offsets(next_input, region)
        stitch_feature_maps(data, stitched, next_input.w, next_input.h, channels,
                            offset.w1, offset.w2, offset.h1, offset.h2)
    return stitched