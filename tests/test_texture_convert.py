import pytest
from hypothesis import given, strategies as st

from gxrender.texture_convert import (
    TextureConversionError,
    TextureFormat,
    WgpuFormat,
    convert_texture,
    decode_c4,
    decode_c8,
    decode_cmpr_rgba8,
    decode_dxt1,
    decode_i4,
    decode_i8,
    decode_ia4,
    decode_ia8,
    decode_rgb565,
    decode_rgb5a3,
    decode_rgba8,
    expand_to_8,
    mipped_block_count_dxt1,
    mipped_texel_count,
    to_wgpu,
)


def tile(values, width, height, block_w, block_h):
    """Rearrange a row-major raster into GX block order."""
    out = []
    for by in range(0, height, block_h):
        for bx in range(0, width, block_w):
            for y in range(block_h):
                for x in range(block_w):
                    out.append(values[(by + y) * width + bx + x])
    return out


def rgba_texels(data):
    return [tuple(data[i:i + 4]) for i in range(0, len(data), 4)]


@given(st.sampled_from([3, 4, 5, 6, 8]), st.data())
def test_expand_keeps_top_bits(bits, data):
    value = data.draw(st.integers(0, (1 << bits) - 1))
    assert expand_to_8(value, bits) >> (8 - bits) == value


@pytest.mark.parametrize("bits", [3, 4, 5, 6])
def test_expand_extremes(bits):
    assert expand_to_8(0, bits) == 0
    assert expand_to_8((1 << bits) - 1, bits) == 0xFF


def test_expand_rejects_bad_width():
    with pytest.raises(ValueError):
        expand_to_8(1, 2)


@given(st.integers(1, 64), st.integers(1, 64), st.integers(1, 6))
def test_mipped_texel_count_invariants(w, h, mips):
    assert mipped_texel_count(w, h, 1) == w * h
    assert mipped_texel_count(w, h, mips + 1) > mipped_texel_count(w, h, mips)


def test_mipped_block_count_matches_quarter_texels():
    assert mipped_block_count_dxt1(16, 8, 3) == mipped_texel_count(4, 2, 3)


def test_to_wgpu_mapping():
    assert to_wgpu(TextureFormat.I8) is WgpuFormat.R8_UNORM
    assert to_wgpu(TextureFormat.R8_PC) is WgpuFormat.R8_UNORM
    assert to_wgpu(TextureFormat.C8) is WgpuFormat.R16_SINT
    assert to_wgpu(TextureFormat.CMPR, supports_bc=True) is WgpuFormat.BC1_RGBA_UNORM
    assert to_wgpu(TextureFormat.CMPR, supports_bc=False) is WgpuFormat.RGBA8_UNORM
    assert to_wgpu(TextureFormat.RGB5A3) is WgpuFormat.RGBA8_UNORM


def test_i8_untiles():
    w, h = 16, 8
    image = [(i * 7) % 256 for i in range(w * h)]
    assert decode_i8(w, h, 1, bytes(tile(image, w, h, 8, 4))) == bytes(image)


def test_i4_untiles_and_expands():
    w, h = 16, 8
    image = [(i * 5) % 16 for i in range(w * h)]
    nibbles = tile(image, w, h, 8, 8)
    packed = bytes((nibbles[i] << 4) | nibbles[i + 1] for i in range(0, len(nibbles), 2))
    assert decode_i4(w, h, 1, packed) == bytes(expand_to_8(n, 4) for n in image)


def test_ia4_splits_intensity_and_alpha():
    intensities = [i % 16 for i in range(32)]
    alphas = [(15 - i) % 16 for i in range(32)]
    data = bytes((a << 4) | i for i, a in zip(intensities, alphas))
    texels = rgba_texels(decode_ia4(8, 4, 1, data))
    for (r, g, b, a), i, al in zip(texels, intensities, alphas):
        assert r == g == b == expand_to_8(i, 4)
        assert a == expand_to_8(al, 4)


def test_ia8_pairs():
    pairs = [(i * 9 % 256, i * 13 % 256) for i in range(16)]
    data = bytes(v for pair in pairs for v in pair)
    assert rgba_texels(decode_ia8(4, 4, 1, data)) == [(i, i, i, a) for i, a in pairs]


def test_c8_writes_little_endian_indices():
    w, h = 8, 4
    image = [(i * 3) % 256 for i in range(w * h)]
    out = decode_c8(w, h, 1, bytes(tile(image, w, h, 8, 4)))
    assert [int.from_bytes(out[i:i + 2], "little") for i in range(0, len(out), 2)] == image


def test_c4_writes_nibble_indices():
    w, h = 8, 8
    image = [(i * 11) % 16 for i in range(w * h)]
    nibbles = tile(image, w, h, 8, 8)
    packed = bytes((nibbles[i] << 4) | nibbles[i + 1] for i in range(0, len(nibbles), 2))
    out = decode_c4(w, h, 1, packed)
    assert [int.from_bytes(out[i:i + 2], "little") for i in range(0, len(out), 2)] == image


def test_rgb565_pure_red():
    data = bytes([0xF8, 0x00] * 16)
    assert set(rgba_texels(decode_rgb565(4, 4, 1, data))) == {(255, 0, 0, 255)}


@given(st.binary(min_size=32, max_size=32))
def test_rgb565_is_opaque(data):
    out = decode_rgb565(4, 4, 1, data)
    assert len(out) == 64
    assert all(a == 0xFF for _, _, _, a in rgba_texels(out))


def test_rgb5a3_opaque_and_translucent():
    data = bytes([0xFF, 0xFF] * 8 + [0x0F, 0xFF] * 8)
    texels = rgba_texels(decode_rgb5a3(4, 4, 1, data))
    assert texels[:8] == [(0xFF, 0xFF, 0xFF, 0xFF)] * 8
    assert texels[8:] == [(0xFF, 0xFF, 0xFF, 0)] * 8


def test_rgba8_combines_halves():
    texels = [(i, 100 + i, 150 + i, 200 + i) for i in range(16)]
    ar = bytes(v for r, g, b, a in texels for v in (a, r))
    gb = bytes(v for r, g, b, a in texels for v in (g, b))
    assert rgba_texels(decode_rgba8(4, 4, 1, ar + gb)) == texels


@given(st.binary(min_size=32, max_size=32))
def test_dxt1_reorder_is_an_involution(data):
    once = decode_dxt1(8, 8, 1, data)
    assert len(once) == 32
    assert decode_dxt1(8, 8, 1, once) == data


@given(st.binary(min_size=32, max_size=32))
def test_cmpr_alpha_is_binary(data):
    out = decode_cmpr_rgba8(8, 8, 1, data)
    assert len(out) == 4 * 64
    assert {a for _, _, _, a in rgba_texels(out)} <= {0, 0xFF}


def test_cmpr_equal_colors_index_three_is_transparent():
    block = bytes([0x00, 0x00, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF])
    out = decode_cmpr_rgba8(8, 8, 1, block * 4)
    assert all(a == 0 for _, _, _, a in rgba_texels(out))


def test_mipped_output_length():
    out = decode_i8(8, 8, 4, bytes(4096))
    assert len(out) == mipped_texel_count(8, 8, 4)
    out = decode_rgb5a3(8, 8, 3, bytes(4096))
    assert len(out) == 4 * mipped_texel_count(8, 8, 3)


def test_short_data_raises():
    with pytest.raises(TextureConversionError):
        decode_rgba8(4, 4, 1, bytes(10))


def test_convert_texture_dispatch():
    data = bytes(range(32))
    assert convert_texture(TextureFormat.I8, 8, 4, 1, data) == decode_i8(8, 4, 1, data)
    assert convert_texture(TextureFormat.CMPR, 8, 8, 1, data, supports_bc=True) == decode_dxt1(8, 8, 1, data)
    assert convert_texture(TextureFormat.CMPR, 8, 8, 1, data, supports_bc=False) == decode_cmpr_rgba8(8, 8, 1, data)


def test_convert_texture_passthrough_formats():
    assert convert_texture(TextureFormat.R8_PC, 4, 4, 1, bytes(16)) is None
    assert convert_texture(TextureFormat.RGBA8_PC, 4, 4, 1, bytes(64)) is None


def test_convert_texture_errors():
    with pytest.raises(TextureConversionError):
        convert_texture(TextureFormat.C14X2, 4, 4, 1, bytes(32))
    with pytest.raises(TextureConversionError):
        convert_texture(0x7F, 4, 4, 1, bytes(32))
    with pytest.raises(TextureConversionError):
        convert_texture(TextureFormat.CTF_A8, 4, 4, 1, bytes(32))