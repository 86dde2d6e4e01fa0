"""Texture objects and the per-mip uploads made from GX texture data."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NoReturn, Optional

from gxrender.errors import LogLevel, Reporter
from gxrender.texture_convert import WgpuFormat, convert_texture, to_wgpu

_log = Reporter("gxrender.texture")


def _fatal(message: str) -> NoReturn:
    _log.report(LogLevel.FATAL, message)
    raise AssertionError("unreachable")


@dataclass(frozen=True)
class FormatInfo:
    """Block layout of a GPU texture format."""

    block_width: int
    block_height: int
    block_size: int
    compressed: bool


_FORMAT_INFO = {
    WgpuFormat.R8_UNORM: FormatInfo(1, 1, 1, False),
    WgpuFormat.R16_SINT: FormatInfo(1, 1, 2, False),
    WgpuFormat.RGBA8_UNORM: FormatInfo(1, 1, 4, False),
    WgpuFormat.R32_FLOAT: FormatInfo(1, 1, 4, False),
    WgpuFormat.BC1_RGBA_UNORM: FormatInfo(4, 4, 8, True),
}


def format_info(format: WgpuFormat) -> FormatInfo:
    """Return the block layout of ``format``."""
    info = _FORMAT_INFO.get(format)
    if info is None:
        name = format.name if isinstance(format, WgpuFormat) else format
        _fatal(f"unimplemented texture format {name}")
    return info


def physical_size(width: int, height: int, depth: int, info: FormatInfo) -> tuple[int, int, int]:
    """Round a mip size up to whole blocks of the format."""
    bw, bh = info.block_width, info.block_height
    return ((width + bw - 1) // bw) * bw, ((height + bh - 1) // bh) * bh, depth


@dataclass(frozen=True)
class MipUpload:
    """Data written to one mip level of a texture."""

    mip_level: int
    width: int
    height: int
    depth: int
    bytes_per_row: int
    rows_per_image: int
    data: bytes


@dataclass
class Texture:
    """A GPU texture together with the contents last written to it."""

    label: str
    width: int
    height: int
    format: WgpuFormat
    mip_count: int
    gx_format: Optional[int]
    is_render_texture: bool = False
    supports_bc: bool = False
    depth: int = 1
    mips: list[MipUpload] = field(default_factory=list)

    @property
    def view_label(self) -> str:
        return f"{self.label} view"

    def write(self, data) -> list[MipUpload]:
        """Replace the texture contents with ``data`` (GX layout if the texture has a GX format)."""
        return self._upload(data, self.mip_count, "write_texture")

    def _upload(self, data, mip_levels: int, context: str) -> list[MipUpload]:
        data = bytes(data)
        if self.gx_format is not None:
            converted = convert_texture(
                self.gx_format, self.width, self.height, self.mip_count, data, self.supports_bc
            )
            if converted:
                data = converted

        info = format_info(self.format)
        uploads = []
        offset = 0
        for mip in range(mip_levels):
            width, height, depth = physical_size(
                max(self.width >> mip, 1), max(self.height >> mip, 1), self.depth, info
            )
            width_blocks = width // info.block_width
            height_blocks = height // info.block_height
            bytes_per_row = width_blocks * info.block_size
            data_size = bytes_per_row * height_blocks * depth
            if offset + data_size > len(data):
                _fatal(f"{context}: expected at least {offset + data_size} bytes, got {len(data)}")
            uploads.append(
                MipUpload(
                    mip_level=mip,
                    width=width,
                    height=height,
                    depth=depth,
                    bytes_per_row=bytes_per_row,
                    rows_per_image=height_blocks,
                    data=data[offset:offset + data_size],
                )
            )
            offset += data_size
        if offset < len(data):
            _log.report(
                LogLevel.WARNING,
                f"{context}: texture used {offset} bytes, but given {len(data)} bytes",
            )
        self.mips = uploads
        return uploads


def new_dynamic_texture(
    width: int,
    height: int,
    mips: int,
    gx_format: Optional[int],
    label: str,
    supports_bc: bool = False,
) -> Texture:
    """Create an empty 2D texture for a GX format."""
    return Texture(
        label=label,
        width=width,
        height=height,
        format=to_wgpu(gx_format, supports_bc),
        mip_count=mips,
        gx_format=gx_format,
        supports_bc=supports_bc,
    )


def new_static_texture(
    width: int,
    height: int,
    mips: int,
    gx_format: Optional[int],
    data,
    label: str,
    supports_bc: bool = False,
) -> Texture:
    """Create a 2D texture and fill it with ``data``."""
    texture = new_dynamic_texture(width, height, mips, gx_format, label, supports_bc)
    texture._upload(data, mips, f"new_static_texture[{label}]")
    return texture


def new_render_texture(
    width: int,
    height: int,
    gx_format: Optional[int],
    label: str,
    swap_chain_format: WgpuFormat = WgpuFormat.BGRA8_UNORM,
) -> Texture:
    """Create a single-mip texture in the swap chain format for copied frame contents."""
    return Texture(
        label=label,
        width=width,
        height=height,
        format=swap_chain_format,
        mip_count=1,
        gx_format=gx_format,
        is_render_texture=True,
    )