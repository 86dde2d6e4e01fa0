from hypothesis import given, strategies as st

from gxrender.gx_config import AttrType, ShaderConfig, VtxAttr
from gxrender.stream_pipeline import VertexAttribute, VertexFormat, stream_vertex_layout


def test_position_only():
    layout = stream_vertex_layout(ShaderConfig())
    assert layout.array_stride == 12
    assert layout.attributes == [VertexAttribute(VertexFormat.FLOAT32X3, 0, 0)]


def test_normal_color_and_uv_order():
    config = ShaderConfig()
    for attr in (VtxAttr.TEX0, VtxAttr.CLR0, VtxAttr.NRM):
        config.vtx_attrs[attr] = AttrType.DIRECT
    layout = stream_vertex_layout(config)
    formats = [a.format for a in layout.attributes]
    assert formats == [
        VertexFormat.FLOAT32X3,
        VertexFormat.FLOAT32X3,
        VertexFormat.FLOAT32X4,
        VertexFormat.FLOAT32X2,
    ]
    assert layout.attributes[1].offset == 12


def test_tex7_and_clr1_are_ignored():
    config = ShaderConfig()
    config.vtx_attrs[VtxAttr.TEX7] = AttrType.DIRECT
    config.vtx_attrs[VtxAttr.CLR1] = AttrType.DIRECT
    assert stream_vertex_layout(config) == stream_vertex_layout(ShaderConfig())


def test_indexed_attributes_are_ignored():
    config = ShaderConfig()
    config.vtx_attrs[VtxAttr.NRM] = AttrType.INDEX16
    assert len(stream_vertex_layout(config).attributes) == 1


@given(st.lists(st.sampled_from([VtxAttr.NRM, VtxAttr.CLR0] + [VtxAttr(i) for i in range(VtxAttr.TEX0, VtxAttr.TEX7)]),
                unique=True))
def test_layout_is_contiguous(direct):
    config = ShaderConfig()
    for attr in direct:
        config.vtx_attrs[attr] = AttrType.DIRECT
    layout = stream_vertex_layout(config)
    assert len(layout.attributes) == 1 + len(direct)
    offset = 0
    for location, attribute in enumerate(layout.attributes):
        assert attribute.shader_location == location
        assert attribute.offset == offset
        offset += attribute.format.size
    assert layout.array_stride == offset