# fusedtiles

This package splits the first few layers of a convolutional network into a grid of
independent tiles. The technique is called fused tile partitioning. The package
also stitches the tiles' results back into one feature map.

It starts from a tile of the last fused layer's output. It then walks back through
the fused layers and works out which region of each earlier feature map that tile
depends on, back to the network input. This makes neighbouring tiles overlap. A
checkerboard schedule lets half of the tiles compute those overlaps and pass them
on. The other half can then start from smaller inputs.

Feature maps are flat, channel-major (CHW) `float32` numpy arrays.

## Modules

### `fusedtiles.tiles`: geometry and copying

- `TileRegion` is a frozen dataclass for an inclusive rectangle. Its fields are
  `w1..w2` and `h1..h2`, plus `w`, `h` and `c`.
  - `describe()` returns a small text drawing of the region.
  - `is_empty()` is true when the width or the height is not positive.
- `make_region(w1, w2, h1, h2)` builds a region and derives `w` and `h` from the bounds.
- `relative_offsets(large, small)` expresses `small` relative to the top-left corner of `large`.
- These types describe the fused layers:
  - `LayerType` has the members `CONVOLUTIONAL`, `MAXPOOL` and `OTHER`.
  - `LayerParameters` holds `type`, `stride`, `filter`, `input_map` and `output_map`.
  - `NetworkParameters` holds a tuple of `layers`, and `len()` gives the number of layers.
- `crop_feature_maps(data, w, h, c, dw1, dw2, dh1, dh2)` copies a window out of a map
  into a new flat array.
- `stitch_feature_maps(data, output, w, h, c, dw1, dw2, dh1, dh2)` writes a tile into a
  window of `output` in place and returns `output`.
- Both copy functions raise `ValueError` for windows outside the map or for arrays
  that are too short.
- The constants are `FUSED_LAYERS_MAX` (16), `PARTITIONS_W_MAX` (6),
  `PARTITIONS_H_MAX` (6) and `PARTITIONS_MAX` (36).

### `fusedtiles.ftp`: partitioning

`traversal(net_para, output, layer)` maps an output region of a layer back to the
input region that the layer reads. Each layer type is handled differently:

- A convolutional layer pads by `filter // 2`, and the result is clamped to the input map.
- A max-pool layer scales by its stride.
- Any other layer type raises `ValueError`.

`perform_ftp(n, m, fused_layers, net_para)` returns `FtpParameters`:

- It splits the last fused layer's output into an `n × m` grid. Tasks are numbered
  row by row.
- It traces every tile back through the fused layers.
- The grid must be at most 6 × 6, and `fused_layers` must fit the network. Otherwise
  it raises `ValueError`.
- `FtpParameters` holds `input_tiles` and `output_tiles` per task and per layer.
- It also has a `partitions` property, and `task_at(row, col)` and
  `grid_position(task_id)`. Both raise `IndexError` when out of range.

`reuse_aware_schedule(partitions_h, partitions_w)` returns the checkerboard of
dependency levels. Level 0 tiles do not depend on other tiles. Level 1 tiles use
data that level 0 tiles produce.

`perform_ftp_reuse(net_para, ftp_para)` derives an `FtpReuseParameters` from a plain
tiling:

- Level 1 tiles get shrunken tiles, with the overlap of their neighbours removed.
- The overlaps are recorded in `output_reuse_regions` as `OverlappedTileData`. That
  class holds `regions` and `data`, each keyed by `Position`.
- The byte sizes of the exchanged data are kept in `adjacent_reuse_data_size` and
  `self_reuse_data_size`.

`FtpReuseParameters` also has these methods:

- `adjacent_task_ids(task_id)` returns the neighbours' task ids as a dict keyed by
  `Position`.
- `mark_covered`, `is_covered`, `mark_missing` and `is_missing` keep per-frame marks.
- `clean_coverage(frame_num)` forgets one frame's marks.
- `is_reuse_ready(task_id, frame_num)` is true when every neighbour is covered for
  that frame.

`Position` has the members `DOWN`, `RIGHT`, `UP` and `LEFT`. `mirror()` gives the
opposite side.

### `fusedtiles.reuse`: overlapped data

Coverage checks:

- `check_local_coverage(reuse, task_id, frame_num)` flags each side whose neighbour is
  not yet covered for the frame.
- `check_missing_coverage(reuse, task_id, frame_num)` flags each side whose neighbour
  is marked missing.
- `need_reuse_data_from_gateway(required)` is true if any side is flagged.
- `format_reuse_requirements(required)` returns the flags as text.

Packing and unpacking:

- `serialize_self_reuse_data(reuse, net_para, task_id)` packs the overlaps that a task
  recorded for its neighbours into one flat array. The deepest layer comes first.
- `serialize_adjacent_reuse_data(reuse, net_para, task_id, required)` packs the
  neighbours' overlaps that the task needs.
- `deserialize_adjacent_reuse_data(...)` splits such a payload back into data per
  side and per layer. The payload may be an array or `bytes`.
- `place_adjacent_deserialized_data(...)` stores the unpacked data as though the
  neighbours had recorded it.

Between the layers of a forward pass:

- `record_overlapped_output(reuse, net_para, task_id, layer, layer_output)` keeps the
  parts of a tile's output that its neighbours will need.
- `stitch_reuse_output(reuse, net_para, task_id, layer, layer_output)` builds the next
  layer's input tile. It places the tile's own output and, unless the next layer is a
  max-pool layer, the neighbours' recorded overlaps.
- Overlap data that is missing raises `ValueError`.

### `fusedtiles.partitioner`: frames and tasks

`partition_frame(ftp_para, net_para, frame, frame_num, client_id, reuse=None)` cuts a
flat input frame into one `Task` per tile. A `Task` holds `task_id`, `frame_num`,
`client_id` and `data`. The call returns a `PartitionedFrame`, and the tasks come in
row-major order.

When a reuse tiling is given, `partition_frame` also does the following:

- It moves level 1 tasks behind the others. They keep their full-size inputs, so they
  can still run alone.
- It clears the frame's coverage marks.
- It stores the shrunken inputs in `reuse.shrinked_input`, and returns them as
  `shrinked_inputs`.

`merge_results(ftp_para, net_para, frame_num, results)` combines the tasks of a frame
into the full output of the last fused layer:

- It skips results that belong to other frames.
- If the last fused layer is convolutional, it crops each result to its output tile.
- It stitches the results into the full output.
- It raises `ValueError` if the frame has too few results.

### `fusedtiles.cli`: argument lookup

`get_int_arg(argv, arg, default)`, `get_float_arg(...)` and `get_string_arg(...)` each
return the value that follows the first occurrence of `arg` in `argv`, or `default`
if there is none.

- The integer lookup reads only the leading numeric part of the value, and gives
  `0` if there is none.
- The float lookup does the same and gives `0.0` if there is none.

## Example

```python
import numpy as np

from fusedtiles.tiles import LayerParameters, LayerType, NetworkParameters, TileRegion
from fusedtiles.ftp import perform_ftp, perform_ftp_reuse
from fusedtiles.partitioner import partition_frame
from fusedtiles.cli import get_int_arg

def conv(c_in, c_out):
    in_map = TileRegion(w1=0, h1=0, w2=7, h2=7, w=8, h=8, c=c_in)
    out_map = TileRegion(w1=0, h1=0, w2=7, h2=7, w=8, h=8, c=c_out)
    return LayerParameters(LayerType.CONVOLUTIONAL, 1, 3, in_map, out_map)

net = NetworkParameters((conv(1, 2), conv(2, 2)))
rows = get_int_arg(["-n", "2"], "-n", 5)          # 2
ftp = perform_ftp(rows, 2, 2, net)
reuse = perform_ftp_reuse(net, ftp)

frame = np.arange(64, dtype=np.float32)
parts = partition_frame(ftp, net, frame, frame_num=0, client_id=0, reuse=reuse)
for task in parts.tasks:
    print(task.task_id, task.data.size)
```

## What it does not do

This package only plans and moves tiles. It does not do any of the following:

- load a network or its weights;
- run any layer;
- read images;
- draw detections;
- send data between devices.

The caller computes each task's layer outputs and passes them to the functions
above. No command-line program is installed. `fusedtiles.cli` only offers the lookup
helpers.

## Requirements

Python 3.10 or later, and numpy.