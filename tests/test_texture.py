import pytest

from gxrender.errors import FatalError, LogLevel, set_log_callback
from gxrender.texture import (
    FormatInfo,
    format_info,
    new_dynamic_texture,
    new_render_texture,
    new_static_texture,
    physical_size,
)
from gxrender.texture_convert import (
    TextureFormat,
    WgpuFormat,
    decode_dxt1,
    decode_i8,
)


@pytest.fixture
def captured():
    messages = []
    previous = set_log_callback(lambda level, message: messages.append((level, message)))
    yield messages
    set_log_callback(previous)


def test_format_info_values():
    assert format_info(WgpuFormat.R8_UNORM) == FormatInfo(1, 1, 1, False)
    assert format_info(WgpuFormat.R16_SINT) == FormatInfo(1, 1, 2, False)
    assert format_info(WgpuFormat.RGBA8_UNORM) == FormatInfo(1, 1, 4, False)
    assert format_info(WgpuFormat.R32_FLOAT) == FormatInfo(1, 1, 4, False)
    assert format_info(WgpuFormat.BC1_RGBA_UNORM) == FormatInfo(4, 4, 8, True)


def test_format_info_unknown_is_fatal():
    with pytest.raises(FatalError, match="unimplemented texture format"):
        format_info(WgpuFormat.BGRA8_UNORM)


def test_physical_size_rounds_to_blocks():
    info = format_info(WgpuFormat.BC1_RGBA_UNORM)
    assert physical_size(5, 1, 1, info) == (8, 4, 1)
    assert physical_size(4, 4, 1, info) == (4, 4, 1)
    assert physical_size(3, 7, 2, format_info(WgpuFormat.RGBA8_UNORM)) == (3, 7, 2)


def test_dynamic_texture_properties():
    tex = new_dynamic_texture(16, 8, 2, TextureFormat.C4, "palette")
    assert tex.format == WgpuFormat.R16_SINT
    assert tex.mip_count == 2
    assert tex.view_label == "palette view"
    assert not tex.is_render_texture
    assert tex.mips == []


def test_dynamic_cmpr_format_depends_on_bc_support():
    assert new_dynamic_texture(8, 8, 1, TextureFormat.CMPR, "a").format == WgpuFormat.RGBA8_UNORM
    assert (
        new_dynamic_texture(8, 8, 1, TextureFormat.CMPR, "b", supports_bc=True).format
        == WgpuFormat.BC1_RGBA_UNORM
    )


def test_static_unconverted_mip_chain():
    width, height, mips = 4, 4, 3
    sizes = [max(width >> i, 1) * max(height >> i, 1) * 4 for i in range(mips)]
    data = bytes(i % 256 for i in range(sum(sizes)))
    tex = new_static_texture(width, height, mips, TextureFormat.RGBA8_PC, data, "pc")
    assert [m.width for m in tex.mips] == [max(width >> i, 1) for i in range(mips)]
    assert [m.mip_level for m in tex.mips] == list(range(mips))
    assert b"".join(m.data for m in tex.mips) == data
    assert all(m.bytes_per_row == m.width * 4 for m in tex.mips)
    assert all(m.rows_per_image == m.height for m in tex.mips)


def test_static_converts_gx_data():
    data = bytes(range(32))
    tex = new_static_texture(8, 4, 1, TextureFormat.I8, data, "i8")
    assert tex.format == WgpuFormat.R8_UNORM
    assert len(tex.mips) == 1
    assert tex.mips[0].data == decode_i8(8, 4, 1, data)
    assert tex.mips[0].bytes_per_row == 8


def test_write_compressed_blocks():
    data = bytes(range(32))
    tex = new_dynamic_texture(8, 8, 1, TextureFormat.CMPR, "cmpr", supports_bc=True)
    uploads = tex.write(data)
    assert uploads == tex.mips
    assert uploads[0].data == decode_dxt1(8, 8, 1, data)
    assert uploads[0].rows_per_image == 2
    assert uploads[0].bytes_per_row == 2 * 8


def test_write_replaces_contents():
    tex = new_dynamic_texture(2, 2, 1, TextureFormat.RGBA8_PC, "pc")
    tex.write(bytes(16))
    tex.write(bytes([7]) * 16)
    assert tex.mips[0].data == bytes([7]) * 16


def test_short_data_is_fatal():
    with pytest.raises(FatalError, match="expected at least"):
        new_static_texture(4, 4, 1, TextureFormat.RGBA8_PC, bytes(10), "short")


def test_write_short_data_is_fatal():
    tex = new_dynamic_texture(4, 4, 1, TextureFormat.RGBA8_PC, "short")
    with pytest.raises(FatalError, match="write_texture"):
        tex.write(bytes(63))


def test_extra_data_warns(captured):
    tex = new_dynamic_texture(2, 2, 1, TextureFormat.RGBA8_PC, "extra")
    tex.write(bytes(20))
    assert len(captured) == 1
    level, message = captured[0]
    assert level == LogLevel.WARNING
    assert "used 16 bytes" in message
    assert "given 20 bytes" in message


def test_static_warning_mentions_label(captured):
    new_static_texture(2, 2, 1, TextureFormat.RGBA8_PC, bytes(24), "mylabel")
    assert len(captured) == 1
    assert "mylabel" in captured[0][1]


def test_render_texture():
    tex = new_render_texture(32, 16, TextureFormat.RGB565, "copy")
    assert tex.is_render_texture
    assert tex.mip_count == 1
    assert tex.format == WgpuFormat.BGRA8_UNORM
    custom = new_render_texture(32, 16, TextureFormat.RGB565, "copy", WgpuFormat.RGBA8_UNORM)
    assert custom.format == WgpuFormat.RGBA8_UNORM


def test_render_texture_in_swap_chain_format_cannot_be_written():
    tex = new_render_texture(4, 4, TextureFormat.RGBA8_PC, "copy")
    with pytest.raises(FatalError):
        tex.write(bytes(64))