# gxrender

Pure-Python building blocks for rendering GX-style (GameCube/Wii) graphics
state on top of WebGPU. The package produces the data a WebGPU renderer
needs: decoded textures, per-mip upload layouts, WGSL shader source, vertex
buffer layouts and vertex/index buffers.

## Modules

- `gxrender.texture_convert`: turns tiled, big-endian GX texture data into
  linear layouts. `convert_texture(format, width, height, mips, data,
  supports_bc)` dispatches on a `TextureFormat` to `decode_i4`, `decode_i8`,
  `decode_ia4`, `decode_ia8`, `decode_c4`, `decode_c8`, `decode_rgb565`,
  `decode_rgb5a3`, `decode_rgba8`, and for CMPR to `decode_dxt1` (when BC
  compression is supported) or `decode_cmpr_rgba8`. It returns `None` for
  `R8_PC` and `RGBA8_PC`, which need no conversion. `to_wgpu` maps a GX
  format to a `WgpuFormat`. Unknown formats, C14X2 and too little source data
  raise `TextureConversionError` (a `ValueError`).
- `gxrender.texture`: `Texture` objects created with `new_dynamic_texture`,
  `new_static_texture` and `new_render_texture`. Writing data
  (`Texture.write`) converts it from the GX layout and splits it into one
  `MipUpload` per mip level, with physical size, bytes per row and rows per
  image taken from `format_info` and `physical_size`.
- `gxrender.gx_config`: the pipeline description (`ShaderConfig`,
  `TevStage`, `ColorChannelConfig`, `TcgConfig`, `AlphaCompare`,
  `TextureConfig` and their enums) and `build_shader_info`, which works out
  the registers, textures, colors and matrices a shader uses and the aligned
  size of its uniform block.
- `gxrender.gx_exprs`: WGSL expressions for individual pieces of state
  (TEV inputs, bias, scale, alpha tests, vertex attributes, texture format
  adjustments).
- `gxrender.gx_shader`: `build_shader_source(config, info)` emits a complete
  WGSL vertex and fragment shader; `ShaderCache` keeps generated sources
  keyed by configuration.
- `gxrender.stream_pipeline`: `VertexLayout`, `VertexAttribute`,
  `VertexFormat` and `stream_vertex_layout` for immediate-mode geometry.
- `gxrender.display_list`: `parse_display_list` decodes the draw commands of
  a display list into float vertices and 16-bit triangle-list indices
  (`prepare_vtx_buffer`, `prepare_idx_buffer`); `DisplayListCache` memoises
  the results by the list's bytes; `model_vertex_layout` gives the matching
  vertex layout.
- `gxrender.errors`: `FatalError`, `LogLevel`, `Reporter`,
  `set_log_callback`, and the helpers `align` and `swap32`.

## Example

```python
from gxrender.texture_convert import TextureFormat, convert_texture

tiled = bytes(range(64))  # an 8x8 I8 texture as the hardware stores it
linear = convert_texture(TextureFormat.I8, 8, 8, 1, tiled)  # one byte per texel
```

```python
from gxrender.gx_config import AttrType, ShaderConfig, VtxAttr, build_shader_info
from gxrender.gx_shader import ShaderCache

config = ShaderConfig()
config.vtx_attrs[VtxAttr.POS] = AttrType.DIRECT
info = build_shader_info(config, 256)
cache = ShaderCache()
wgsl = cache.build(config, info)
```

## Errors and logging

Invalid pipeline state (for example an unmapped vertex attribute, an
unsupported primitive, or texture data shorter than its mip levels need)
raises `gxrender.errors.FatalError`. Messages are reported through
`Reporter`; install a receiver with `set_log_callback`. A message reported
at `LogLevel.FATAL` is passed to the receiver and then raised as
`FatalError`.

## What the package does not do

It never talks to a GPU: it creates no devices, textures, pipelines or bind
groups, submits no draw calls and opens no window. Texture objects only
record the uploads a renderer would make, and shaders are returned as WGSL
text. There is no command-line program and no user interface.

## Installation and tests

The package has no runtime dependencies and supports Python 3.10 and later.

```
pip install -e ".[test]"
pytest
```