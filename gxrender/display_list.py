"""Display-list parsing into vertex and index buffers for model geometry."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import NoReturn, Optional, Sequence

from gxrender.errors import LogLevel, Reporter
from gxrender.gx_config import MAX_VTX_ATTR, AttrType, ShaderConfig, VtxAttr
from gxrender.stream_pipeline import VertexFormat, VertexLayout

_log = Reporter("gxrender.model")

_OPCODE_MASK = 0xF8
_VAT_MASK = 0x07
_NOP = 0x00
_LOAD_BP_REG = 0x61


def _fatal(message: str) -> NoReturn:
    _log.report(LogLevel.FATAL, message)
    raise AssertionError("unreachable")


class CompType(IntEnum):
    """Component type of a vertex attribute."""

    U8 = 0
    S8 = 1
    U16 = 2
    S16 = 3
    F32 = 4
    RGBA8 = 5


class CompCount(IntEnum):
    """Component count of a vertex attribute; values overlap between attribute kinds."""

    POS_XY = 0
    POS_XYZ = 1
    NRM_XYZ = 0
    NRM_NBT = 1
    NRM_NBT3 = 2
    CLR_RGB = 0
    CLR_RGBA = 1
    TEX_S = 0
    TEX_ST = 1


class Primitive(IntEnum):
    """Primitive types, equal to their draw opcodes."""

    QUADS = 0x80
    TRIANGLES = 0x90
    TRIANGLESTRIP = 0x98
    TRIANGLEFAN = 0xA0
    LINES = 0xA8
    LINESTRIP = 0xB0
    POINTS = 0xB8


@dataclass(frozen=True)
class VtxAttrFormat:
    """Storage format of one attribute within a vertex format."""

    cnt: int
    type: int
    frac: int = 0


@dataclass(frozen=True)
class PreparedVertices:
    """Vertices decoded from a display list."""

    data: bytes
    vtx_size: int
    out_vtx_size: int
    indexed_attrs: frozenset


@dataclass(frozen=True)
class DisplayListResult:
    """Vertex and 16-bit index buffers built from a whole display list."""

    vertices: bytes
    indices: bytes
    index_count: int
    indexed_attrs: frozenset


@dataclass(frozen=True)
class _Direct:
    count: int
    type: CompType
    in_size: int

    @property
    def out_size(self) -> int:
        return self.count * 4


def _build_direct_layouts() -> dict:
    table = {}
    for attr, cnt in ((VtxAttr.POS, CompCount.POS_XYZ), (VtxAttr.NRM, CompCount.NRM_XYZ)):
        table[(int(attr), int(cnt), int(CompType.F32))] = _Direct(3, CompType.F32, 12)
        table[(int(attr), int(cnt), int(CompType.S16))] = _Direct(3, CompType.S16, 6)
    for attr in range(VtxAttr.TEX0, VtxAttr.TEX7 + 1):
        table[(attr, int(CompCount.TEX_ST), int(CompType.F32))] = _Direct(2, CompType.F32, 8)
        table[(attr, int(CompCount.TEX_ST), int(CompType.S16))] = _Direct(2, CompType.S16, 4)
    for attr in (VtxAttr.CLR0, VtxAttr.CLR1):
        table[(int(attr), int(CompCount.CLR_RGBA), int(CompType.RGBA8))] = _Direct(4, CompType.RGBA8, 4)
    return table


_DIRECT_LAYOUTS = _build_direct_layouts()

_INT_FORMATS = {
    CompType.U8: ("B", 1),
    CompType.S8: ("b", 1),
    CompType.U16: ("H", 2),
    CompType.S16: ("h", 2),
}

_VALID_ATTR_TYPES = frozenset(int(t) for t in AttrType)


def _encode_direct(direct: _Direct, frac: int, chunk: bytes) -> bytes:
    if direct.type == CompType.F32:
        return b"".join(chunk[i:i + 4][::-1] for i in range(0, direct.count * 4, 4))
    if direct.type == CompType.RGBA8:
        values = [byte / 255.0 for byte in chunk[:4]]
    else:
        code, _ = _INT_FORMATS[direct.type]
        scale = float(1 << frac)
        values = [v / scale for v in struct.unpack(f">{direct.count}{code}", chunk)]
    return struct.pack(f"<{len(values)}f", *values)


def prepare_vtx_buffer(
    vtx_desc: Sequence[int],
    attr_formats: Sequence[VtxAttrFormat],
    data,
    vtx_count: int,
) -> PreparedVertices:
    """Decode ``vtx_count`` big-endian vertices into 32-bit floats and 16-bit indices."""
    data = bytes(data)
    plan = []
    indexed = set()
    vtx_size = 0
    out_size = 0
    for attr in range(MAX_VTX_ATTR):
        kind = vtx_desc[attr]
        if kind not in _VALID_ATTR_TYPES:
            _fatal(f"unhandled attribute type {int(kind)}")
        if kind == AttrType.NONE:
            continue
        if kind == AttrType.DIRECT:
            fmt = attr_formats[attr]
            direct = _DIRECT_LAYOUTS.get((attr, int(fmt.cnt), int(fmt.type)))
            if direct is None:
                _fatal(f"not handled: attr {attr}, cnt {int(fmt.cnt)}, type {int(fmt.type)}")
            plan.append((direct, fmt.frac))
            vtx_size += direct.in_size
            out_size += direct.out_size
        elif kind == AttrType.INDEX8:
            plan.append((AttrType.INDEX8, 0))
            vtx_size += 1
            out_size += 2
            indexed.add(attr)
        else:
            plan.append((AttrType.INDEX16, 0))
            vtx_size += 2
            out_size += 2
            indexed.add(attr)

    padding = (4 - out_size % 4) % 4
    out_size += padding

    if vtx_count * vtx_size > len(data):
        _fatal(f"display list truncated: expected {vtx_count * vtx_size} vertex bytes, got {len(data)}")

    out = bytearray()
    pos = 0
    for _ in range(vtx_count):
        for entry, frac in plan:
            if entry is AttrType.INDEX8:
                out += struct.pack("<H", data[pos])
                pos += 1
            elif entry is AttrType.INDEX16:
                out += struct.pack("<H", struct.unpack_from(">H", data, pos)[0])
                pos += 2
            else:
                out += _encode_direct(entry, frac, data[pos:pos + entry.in_size])
                pos += entry.in_size
        out += bytes(padding)

    return PreparedVertices(bytes(out), vtx_size, out_size, frozenset(indexed))


def prepare_idx_buffer(prim, vtx_start: int, vtx_count: int) -> list[int]:
    """Triangle-list indices for a primitive of ``vtx_count`` vertices starting at ``vtx_start``."""
    indices: list[int] = []
    if prim == Primitive.TRIANGLES:
        indices.extend((vtx_start + v) & 0xFFFF for v in range(vtx_count))
    elif prim == Primitive.TRIANGLEFAN:
        for v in range(vtx_count):
            idx = (vtx_start + v) & 0xFFFF
            if v < 3:
                indices.append(idx)
            else:
                indices.extend((vtx_start & 0xFFFF, (idx - 1) & 0xFFFF, idx))
    elif prim == Primitive.TRIANGLESTRIP:
        for v in range(vtx_count):
            idx = (vtx_start + v) & 0xFFFF
            if v < 3:
                indices.append(idx)
            elif v % 2 == 0:
                indices.extend(((idx - 2) & 0xFFFF, (idx - 1) & 0xFFFF, idx))
            else:
                indices.extend(((idx - 1) & 0xFFFF, (idx - 2) & 0xFFFF, idx))
    else:
        _fatal(f"unsupported primitive type {int(prim)}")
    return indices


_DRAW_PRIMITIVES = frozenset({
    Primitive.QUADS,
    Primitive.TRIANGLES,
    Primitive.TRIANGLESTRIP,
    Primitive.TRIANGLEFAN,
})
_UNSUPPORTED_PRIMITIVES = frozenset({Primitive.LINES, Primitive.LINESTRIP, Primitive.POINTS})


def parse_display_list(data, vtx_desc: Sequence[int], vtx_formats: Sequence[Sequence[VtxAttrFormat]]) -> DisplayListResult:
    """Build vertex and index buffers from the draw commands of a display list."""
    data = bytes(data)
    pos = 0
    vertices = bytearray()
    indices: list[int] = []
    indexed: set = set()
    vtx_start = 0
    while pos < len(data):
        cmd = data[pos]
        pos += 1
        if cmd == _LOAD_BP_REG:
            pos += 4
            continue
        opcode = cmd & _OPCODE_MASK
        if opcode == _NOP:
            continue
        if opcode in _DRAW_PRIMITIVES:
            if pos + 2 > len(data):
                _fatal("display list truncated: missing vertex count")
            (vtx_count,) = struct.unpack_from(">H", data, pos)
            pos += 2
            prepared = prepare_vtx_buffer(vtx_desc, vtx_formats[cmd & _VAT_MASK], data[pos:], vtx_count)
            pos += vtx_count * prepared.vtx_size
            vertices += prepared.data
            indexed |= prepared.indexed_attrs
            indices.extend(prepare_idx_buffer(Primitive(opcode), vtx_start, vtx_count))
            vtx_start = (vtx_start + vtx_count) & 0xFFFF
        elif opcode in _UNSUPPORTED_PRIMITIVES:
            _fatal(f"unimplemented prim type: {opcode}")
        else:
            _fatal(f"unimplemented opcode: {opcode}")
    return DisplayListResult(
        vertices=bytes(vertices),
        indices=struct.pack(f"<{len(indices)}H", *indices),
        index_count=len(indices),
        indexed_attrs=frozenset(indexed),
    )


class DisplayListCache:
    """Parsed display lists keyed by their bytes."""

    def __init__(self) -> None:
        self._entries: dict[bytes, DisplayListResult] = {}

    def get(self, data, vtx_desc: Sequence[int], vtx_formats) -> DisplayListResult:
        """Return the buffers for ``data``, parsing it the first time it is seen."""
        key = bytes(data)
        result: Optional[DisplayListResult] = self._entries.get(key)
        if result is None:
            result = parse_display_list(key, vtx_desc, vtx_formats)
            self._entries[key] = result
        return result

    def __len__(self) -> int:
        return len(self._entries)


def model_vertex_layout(config: ShaderConfig) -> VertexLayout:
    """Vertex layout for display-list geometry: packed indices first, then direct attributes."""
    layout = VertexLayout()
    num4, rem = divmod(config.indexed_attribute_count, 4)
    num2 = 0
    if rem > 2:
        num4 += 1
    elif rem > 0:
        num2 += 1
    for _ in range(num4):
        layout.add(VertexFormat.SINT16X4)
    for _ in range(num2):
        layout.add(VertexFormat.SINT16X2)

    for i in range(MAX_VTX_ATTR):
        if config.vtx_attrs[i] != AttrType.DIRECT:
            continue
        if i in (VtxAttr.POS, VtxAttr.NRM):
            layout.add(VertexFormat.FLOAT32X3)
        elif i in (VtxAttr.CLR0, VtxAttr.CLR1):
            layout.add(VertexFormat.FLOAT32X4)
        elif VtxAttr.TEX0 <= i <= VtxAttr.TEX7:
            layout.add(VertexFormat.FLOAT32X2)
        else:
            _fatal(f"unhandled direct attr {i}")
    return layout