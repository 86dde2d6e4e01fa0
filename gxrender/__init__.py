"""GX texture decoding, WGSL shader generation, vertex layouts and display-list processing."""

__version__ = "0.1.0"

__all__ = [
    "display_list",
    "errors",
    "gx_config",
    "gx_exprs",
    "gx_shader",
    "stream_pipeline",
    "texture",
    "texture_convert",
]