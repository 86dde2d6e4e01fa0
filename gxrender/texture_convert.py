"""Conversion of GX (tiled, big-endian) texture data into GPU-friendly layouts."""

from __future__ import annotations

import functools
from enum import Enum, IntEnum
from typing import Callable, Iterator


class TextureConversionError(ValueError):
    """Raised when texture data cannot be converted."""


class TextureFormat(IntEnum):
    """GX texture formats, including copy formats and host-side extensions."""

    I4 = 0x0
    I8 = 0x1
    IA4 = 0x2
    IA8 = 0x3
    RGB565 = 0x4
    RGB5A3 = 0x5
    RGBA8 = 0x6
    C4 = 0x8
    C8 = 0x9
    C14X2 = 0xA
    CMPR = 0xE
    CTF_R4 = 0x20
    CTF_RA4 = 0x22
    CTF_RA8 = 0x23
    CTF_YUVA8 = 0x26
    CTF_A8 = 0x27
    CTF_R8 = 0x28
    CTF_G8 = 0x29
    CTF_B8 = 0x2A
    CTF_RG8 = 0x2B
    CTF_GB8 = 0x2C
    R8_PC = 0x60
    RGBA8_PC = 0x61


class WgpuFormat(Enum):
    """GPU texture formats used for uploaded textures."""

    R8_UNORM = "r8unorm"
    R16_SINT = "r16sint"
    R32_FLOAT = "r32float"
    RGBA8_UNORM = "rgba8unorm"
    BGRA8_UNORM = "bgra8unorm"
    BC1_RGBA_UNORM = "bc1-rgba-unorm"


def to_wgpu(format: int, supports_bc: bool = False) -> WgpuFormat:
    """Return the GPU format a GX texture format is uploaded as."""
    if format in (TextureFormat.I4, TextureFormat.I8, TextureFormat.R8_PC):
        return WgpuFormat.R8_UNORM
    if format in (TextureFormat.C4, TextureFormat.C8, TextureFormat.C14X2):
        return WgpuFormat.R16_SINT
    if format == TextureFormat.CMPR and supports_bc:
        return WgpuFormat.BC1_RGBA_UNORM
    return WgpuFormat.RGBA8_UNORM


def expand_to_8(value: int, bits: int) -> int:
    """Expand an unsigned ``bits``-wide value to the full 8-bit range."""
    if not 3 <= bits <= 8:
        raise ValueError(f"cannot expand a {bits}-bit value")
    if bits == 3:
        result = (value << 5) | (value << 2) | (value >> 1)
    else:
        result = (value << (8 - bits)) | (value >> (bits * 2 - 8))
    return result & 0xFF


def _s3tc_blend(a: int, b: int) -> int:
    return ((a * 3 + b * 5) >> 3) & 0xFF


def _half_blend(a: int, b: int) -> int:
    return ((a + b) >> 1) & 0xFF


def _halve(value: int) -> int:
    return value // 2 if value > 1 else value


def mipped_texel_count(width: int, height: int, mips: int) -> int:
    """Number of texels in a texture including all of its mip levels."""
    total = width * height
    w, h = width, height
    for _ in range(mips - 1):
        w, h = _halve(w), _halve(h)
        total += w * h
    return total


def mipped_block_count_dxt1(width: int, height: int, mips: int) -> int:
    """Number of 4x4 compressed blocks in a texture including its mip levels."""
    return mipped_texel_count(width // 4, height // 4, mips)


def _walk_mips(width: int, height: int, mips: int) -> Iterator[tuple[int, int, int]]:
    """Yield (width, height, first element index) for each mip level."""
    w, h, base = width, height, 0
    for _ in range(mips):
        yield w, h, base
        base += w * h
        w, h = _halve(w), _halve(h)


def _source_data(func: Callable[[int, int, int, bytes], bytes]) -> Callable[..., bytes]:
    @functools.wraps(func)
    def wrapper(width: int, height: int, mips: int, data) -> bytes:
        try:
            return func(width, height, mips, bytes(data))
        except IndexError:
            raise TextureConversionError(
                f"{func.__name__}: not enough source data for a {width}x{height} texture with {mips} mips"
            ) from None

    return wrapper


def _put_byte(out: bytearray, index: int, value: int) -> None:
    if index < len(out):
        out[index] = value


def _put_u16(out: bytearray, index: int, value: int) -> None:
    offset = index * 2
    if offset + 2 <= len(out):
        out[offset:offset + 2] = (value & 0xFFFF).to_bytes(2, "little")


def _put_rgba(out: bytearray, texel: int, r: int, g: int, b: int, a: int) -> None:
    offset = texel * 4
    if offset + 4 <= len(out):
        out[offset:offset + 4] = bytes((r, g, b, a))


def _put_channel(out: bytearray, texel: int, channel: int, value: int) -> None:
    offset = texel * 4 + channel
    if texel * 4 + 4 <= len(out):
        out[offset] = value


def _read_be16(data: bytes, offset: int) -> int:
    return (data[offset] << 8) | data[offset + 1]


def _nibble(data: bytes, src: int, x: int) -> int:
    return (data[src + x // 2] >> (0 if x & 1 else 4)) & 0xF


@_source_data
def decode_i4(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile 4-bit intensity data into one byte per texel."""
    out = bytearray(mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        for by in range((h + 7) // 8):
            for bx in range((w + 7) // 8):
                for y in range(min(h, 8)):
                    row = base + (by * 8 + y) * w + bx * 8
                    for x in range(min(w, 8)):
                        _put_byte(out, row + x, expand_to_8(_nibble(data, src, x), 4))
                    src += min(w // 4, 4)
    return bytes(out)


@_source_data
def decode_i8(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile 8-bit intensity data into one byte per texel."""
    out = bytearray(mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        n = min(w, 8)
        for by in range((h + 3) // 4):
            for bx in range((w + 7) // 8):
                for y in range(4):
                    row = base + (by * 4 + y) * w + bx * 8
                    for x in range(n):
                        _put_byte(out, row + x, data[src + x])
                    src += n
    return bytes(out)


@_source_data
def decode_ia4(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile 4-bit intensity/alpha data into RGBA8."""
    out = bytearray(4 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        n = min(w, 8)
        for by in range((h + 3) // 4):
            for bx in range((w + 7) // 8):
                for y in range(4):
                    row = base + (by * 4 + y) * w + bx * 8
                    for x in range(n):
                        value = data[src + x]
                        intensity = expand_to_8(value & 0xF, 4)
                        _put_rgba(out, row + x, intensity, intensity, intensity, expand_to_8(value >> 4, 4))
                    src += n
    return bytes(out)


@_source_data
def decode_ia8(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile 8-bit intensity/alpha data into RGBA8."""
    out = bytearray(4 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        for by in range((h + 3) // 4):
            for bx in range((w + 3) // 4):
                for y in range(4):
                    row = base + (by * 4 + y) * w + bx * 4
                    for x in range(4):
                        texel = _read_be16(data, src + x * 2)
                        intensity = texel >> 8
                        _put_rgba(out, row + x, intensity, intensity, intensity, texel & 0xFF)
                    src += 8
    return bytes(out)


@_source_data
def decode_c4(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile 4-bit palette indices into little-endian 16-bit indices."""
    out = bytearray(2 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        n = min(w, 8)
        for by in range((h + 7) // 8):
            for bx in range((w + 7) // 8):
                for y in range(min(8, h)):
                    row = base + (by * 8 + y) * w + bx * 8
                    for x in range(n):
                        _put_u16(out, row + x, _nibble(data, src, x))
                    src += n // 2
    return bytes(out)


@_source_data
def decode_c8(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile 8-bit palette indices into little-endian 16-bit indices."""
    out = bytearray(2 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        n = min(w, 8)
        for by in range((h + 3) // 4):
            for bx in range((w + 7) // 8):
                for y in range(4):
                    row = base + (by * 4 + y) * w + bx * 8
                    for x in range(n):
                        _put_u16(out, row + x, data[src + x])
                    src += n
    return bytes(out)


@_source_data
def decode_rgb565(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile RGB565 data into RGBA8."""
    out = bytearray(4 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        for by in range((h + 3) // 4):
            for bx in range((w + 3) // 4):
                for y in range(min(4, h)):
                    row = base + (by * 4 + y) * w + bx * 4
                    for x in range(min(4, w)):
                        texel = _read_be16(data, src + x * 2)
                        _put_rgba(
                            out,
                            row + x,
                            expand_to_8((texel >> 11) & 0x1F, 5),
                            expand_to_8((texel >> 5) & 0x3F, 6),
                            expand_to_8(texel & 0x1F, 5),
                            0xFF,
                        )
                    src += 8
    return bytes(out)


def _rgb5a3(texel: int) -> tuple[int, int, int, int]:
    if texel & 0x8000:
        return (
            expand_to_8((texel >> 10) & 0x1F, 5),
            expand_to_8((texel >> 5) & 0x1F, 5),
            expand_to_8(texel & 0x1F, 5),
            0xFF,
        )
    return (
        expand_to_8((texel >> 8) & 0xF, 4),
        expand_to_8((texel >> 4) & 0xF, 4),
        expand_to_8(texel & 0xF, 4),
        expand_to_8((texel >> 12) & 0x7, 3),
    )


@_source_data
def decode_rgb5a3(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile RGB5A3 data into RGBA8."""
    out = bytearray(4 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        for by in range((h + 3) // 4):
            for bx in range((w + 3) // 4):
                for y in range(min(4, h)):
                    row = base + (by * 4 + y) * w + bx * 4
                    for x in range(min(4, w)):
                        _put_rgba(out, row + x, *_rgb5a3(_read_be16(data, src + x * 2)))
                    src += 8
    return bytes(out)


@_source_data
def decode_rgba8(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Untile RGBA8 data (split AR/GB tiles) into RGBA8."""
    out = bytearray(4 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        for by in range((h + 3) // 4):
            for bx in range((w + 3) // 4):
                for half in range(2):
                    for y in range(4):
                        row = base + (by * 4 + y) * w + bx * 4
                        for x in range(4):
                            first, second = data[src + x * 2], data[src + x * 2 + 1]
                            if half:
                                _put_channel(out, row + x, 1, first)
                                _put_channel(out, row + x, 2, second)
                            else:
                                _put_channel(out, row + x, 3, first)
                                _put_channel(out, row + x, 0, second)
                        src += 8
    return bytes(out)


def _reverse_line(packed: int) -> int:
    return (
        ((packed >> 6) & 0x3)
        | (((packed >> 4) & 0x3) << 2)
        | (((packed >> 2) & 0x3) << 4)
        | ((packed & 0x3) << 6)
    )


@_source_data
def decode_dxt1(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Reorder CMPR blocks into little-endian BC1 (DXT1) blocks."""
    out = bytearray(8 * mipped_block_count_dxt1(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width // 4, height // 4, mips):
        for by in range((h + 1) // 2):
            for bx in range((w + 1) // 2):
                for y in range(2):
                    row = base + (by * 2 + y) * w + bx * 2
                    for x in range(2):
                        block = src + x * 8
                        color1 = _read_be16(data, block)
                        color2 = _read_be16(data, block + 2)
                        lines = bytes(_reverse_line(data[block + 4 + i]) for i in range(4))
                        offset = (row + x) * 8
                        if offset + 8 <= len(out):
                            out[offset:offset + 8] = (
                                color1.to_bytes(2, "little") + color2.to_bytes(2, "little") + lines
                            )
                    src += 16
    return bytes(out)


def _cmpr_color_table(color1: int, color2: int) -> list[tuple[int, int, int, int]]:
    def rgb(color: int) -> tuple[int, int, int]:
        return (
            expand_to_8((color >> 11) & 0x1F, 5),
            expand_to_8((color >> 5) & 0x3F, 6),
            expand_to_8(color & 0x1F, 5),
        )

    c0, c1 = rgb(color1), rgb(color2)
    if color1 > color2:
        c2 = tuple(_s3tc_blend(b, a) for a, b in zip(c0, c1))
        c3 = tuple(_s3tc_blend(a, b) for a, b in zip(c0, c1))
        return [(*c0, 0xFF), (*c1, 0xFF), (*c2, 0xFF), (*c3, 0xFF)]
    mid = tuple(_half_blend(a, b) for a, b in zip(c0, c1))
    return [(*c0, 0xFF), (*c1, 0xFF), (*mid, 0xFF), (*mid, 0)]


@_source_data
def decode_cmpr_rgba8(width: int, height: int, mips: int, data: bytes) -> bytes:
    """Decompress CMPR blocks into RGBA8."""
    out = bytearray(4 * mipped_texel_count(width, height, mips))
    src = 0
    for w, h, base in _walk_mips(width, height, mips):
        for yy in range(0, h, 8):
            for xx in range(0, w, 8):
                for yb in (0, 4):
                    for xb in (0, 4):
                        table = _cmpr_color_table(_read_be16(data, src), _read_be16(data, src + 2))
                        src += 4
                        for y in range(4):
                            bits = data[src + y]
                            for x in range(4):
                                px, py = xx + xb + x, yy + yb + y
                                if px >= w or py >= h:
                                    continue
                                _put_rgba(out, base + py * w + px, *table[(bits >> 6) & 3])
                                bits = (bits << 2) & 0xFF
                        src += 4
    return bytes(out)


def convert_texture(format: int, width: int, height: int, mips: int, data, supports_bc: bool = False) -> bytes | None:
    """Convert GX texture data for upload.

    Returns None for formats that are uploaded without conversion.
    """
    try:
        fmt = TextureFormat(format)
    except ValueError:
        raise TextureConversionError(f"convert_texture: unknown texture format {format}") from None
    if fmt in (TextureFormat.R8_PC, TextureFormat.RGBA8_PC):
        return None
    if fmt == TextureFormat.C14X2:
        raise TextureConversionError("convert_texture: C14X2 conversion is unsupported")
    if fmt == TextureFormat.CMPR:
        decoder = decode_dxt1 if supports_bc else decode_cmpr_rgba8
        return decoder(width, height, mips, data)
    decoders = {
        TextureFormat.I4: decode_i4,
        TextureFormat.I8: decode_i8,
        TextureFormat.IA4: decode_ia4,
        TextureFormat.IA8: decode_ia8,
        TextureFormat.C4: decode_c4,
        TextureFormat.C8: decode_c8,
        TextureFormat.RGB565: decode_rgb565,
        TextureFormat.RGB5A3: decode_rgb5a3,
        TextureFormat.RGBA8: decode_rgba8,
    }
    decoder = decoders.get(fmt)
    if decoder is None:
        raise TextureConversionError(f"convert_texture: unknown texture format {format}")
    return decoder(width, height, mips, data)