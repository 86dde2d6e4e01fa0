"""Vertex layout of immediate-mode (streamed) GX geometry."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from gxrender.gx_config import AttrType, ShaderConfig, VtxAttr


class VertexFormat(Enum):
    """GPU vertex attribute formats."""

    FLOAT32X2 = "float32x2"
    FLOAT32X3 = "float32x3"
    FLOAT32X4 = "float32x4"
    SINT16X2 = "sint16x2"
    SINT16X4 = "sint16x4"

    @property
    def size(self) -> int:
        """Size of one attribute value in bytes."""
        return _FORMAT_SIZES[self]


_FORMAT_SIZES = {
    VertexFormat.FLOAT32X2: 8,
    VertexFormat.FLOAT32X3: 12,
    VertexFormat.FLOAT32X4: 16,
    VertexFormat.SINT16X2: 4,
    VertexFormat.SINT16X4: 8,
}


@dataclass(frozen=True)
class VertexAttribute:
    """One attribute inside a vertex buffer."""

    format: VertexFormat
    offset: int
    shader_location: int


@dataclass
class VertexLayout:
    """Stride and attributes of a vertex buffer."""

    array_stride: int = 0
    attributes: list[VertexAttribute] = field(default_factory=list)

    def add(self, format: VertexFormat) -> None:
        """Append an attribute at the end of the vertex."""
        self.attributes.append(VertexAttribute(format, self.array_stride, len(self.attributes)))
        self.array_stride += format.size


def stream_vertex_layout(config: ShaderConfig) -> VertexLayout:
    """Vertex layout for streamed geometry: position, then optional normal, color and UVs."""
    layout = VertexLayout()
    layout.add(VertexFormat.FLOAT32X3)
    if config.vtx_attrs[VtxAttr.NRM] == AttrType.DIRECT:
        layout.add(VertexFormat.FLOAT32X3)
    if config.vtx_attrs[VtxAttr.CLR0] == AttrType.DIRECT:
        layout.add(VertexFormat.FLOAT32X4)
    # TEX7 is not part of streamed vertices.
    for attr in range(VtxAttr.TEX0, VtxAttr.TEX7):
        if config.vtx_attrs[attr] == AttrType.DIRECT:
            layout.add(VertexFormat.FLOAT32X2)
    return layout