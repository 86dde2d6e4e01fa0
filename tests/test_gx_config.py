import pytest
from hypothesis import given, strategies as st

from gxrender.errors import FatalError
from gxrender.gx_config import (
    BASE_UNIFORM_SIZE,
    IDENTITY,
    MAX_LIGHTS,
    PTTEXMTX0,
    TEXMTX0,
    AlphaCompare,
    ChannelId,
    ColorChannelConfig,
    ColorSrc,
    Compare,
    FogType,
    KAlphaSel,
    KColorSel,
    ShaderConfig,
    TevAlphaArg,
    TevColorArg,
    TevOpConfig,
    TevPass,
    TevRegId,
    TevStage,
    TexGenType,
    build_shader_info,
    format_has_alpha,
    is_palette_format,
)
from gxrender.texture_convert import TextureFormat


def _config(*stages: TevStage, **kwargs) -> ShaderConfig:
    config = ShaderConfig(**kwargs)
    for i, stage in enumerate(stages):
        config.tev_stages[i] = stage
    config.tev_stage_count = len(stages)
    return config


def _raw(config: ShaderConfig):
    return build_shader_info(config, 1)


def _tex_stage(coord=0, tex_map=0) -> TevStage:
    return TevStage(
        color_pass=TevPass(TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.TEXC),
        tex_coord_id=coord,
        tex_map_id=tex_map,
    )


@pytest.mark.parametrize(
    "fmt,expected",
    [
        (TextureFormat.C4, True),
        (TextureFormat.C8, True),
        (TextureFormat.C14X2, True),
        (TextureFormat.I8, False),
        (None, False),
    ],
)
def test_is_palette_format(fmt, expected):
    assert is_palette_format(fmt) is expected


@pytest.mark.parametrize(
    "fmt,expected",
    [
        (TextureFormat.RGBA8, True),
        (TextureFormat.CMPR, True),
        (TextureFormat.CTF_A8, True),
        (TextureFormat.RGB565, False),
        (TextureFormat.I4, False),
    ],
)
def test_format_has_alpha(fmt, expected):
    assert format_has_alpha(fmt) is expected


def test_empty_config_uses_base_size():
    info = _raw(ShaderConfig())
    assert info.uniform_size == BASE_UNIFORM_SIZE
    assert not info.loads_tev_reg
    assert not info.uses_fog


def test_default_alignment_is_256():
    assert build_shader_info(ShaderConfig()).uniform_size == 256


def test_reading_prev_loads_register():
    stage = TevStage(color_pass=TevPass(TevColorArg.CPREV, TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.ZERO))
    info = _raw(_config(stage))
    assert info.loads_tev_reg == {TevRegId.TEVPREV}
    assert info.writes_tev_reg == {TevRegId.TEVPREV}
    assert info.uniform_size == BASE_UNIFORM_SIZE + 16


def test_alpha_reads_register_written_by_color():
    stage = TevStage(
        color_op=TevOpConfig(out_reg=TevRegId.TEVREG0),
        alpha_pass=TevPass(TevAlphaArg.A0, TevAlphaArg.ZERO, TevAlphaArg.ZERO, TevAlphaArg.ZERO),
    )
    info = _raw(_config(stage))
    assert TevRegId.TEVREG0 not in info.loads_tev_reg
    # alpha goes to PREV whose color was never written
    assert info.loads_tev_reg == {TevRegId.TEVPREV}
    assert info.writes_tev_reg == {TevRegId.TEVREG0, TevRegId.TEVPREV}


def test_texture_sample_requires_bound_coord():
    with pytest.raises(FatalError):
        _raw(_config(_tex_stage(coord=0xFF)))


def test_texture_sample_requires_bound_map():
    with pytest.raises(FatalError):
        _raw(_config(_tex_stage(tex_map=0xFF)))


def test_texture_sample_records_coord_and_map():
    info = _raw(_config(_tex_stage(coord=2, tex_map=5)))
    assert info.sampled_tex_coords == {2}
    assert info.sampled_textures == {5}
    assert info.uniform_size == BASE_UNIFORM_SIZE + 4


@pytest.mark.parametrize("sel,index", [(KColorSel.K2_G, 2), (KColorSel.K0, 0), (KColorSel.K3_A, 3)])
def test_konst_color(sel, index):
    stage = TevStage(
        color_pass=TevPass(TevColorArg.KONST, TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.ZERO),
        kc_sel=sel,
    )
    info = _raw(_config(stage))
    assert info.sampled_k_colors == {index}
    assert info.uniform_size == BASE_UNIFORM_SIZE + 16


def test_konst_constant_fraction_samples_nothing():
    stage = TevStage(
        color_pass=TevPass(TevColorArg.KONST, TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.ZERO),
        kc_sel=KColorSel.CONST_3_8,
    )
    assert _raw(_config(stage)).sampled_k_colors == set()


def test_konst_alpha():
    stage = TevStage(
        alpha_pass=TevPass(TevAlphaArg.KONST, TevAlphaArg.ZERO, TevAlphaArg.ZERO, TevAlphaArg.ZERO),
        ka_sel=KAlphaSel.K1_B,
    )
    assert _raw(_config(stage)).sampled_k_colors == {1}


def _ras_stage(channel) -> TevStage:
    return TevStage(
        color_pass=TevPass(TevColorArg.RASC, TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.ZERO),
        channel_id=channel,
    )


def test_rasterized_color_channel():
    info = _raw(_config(_ras_stage(ChannelId.COLOR1A1)))
    assert info.sampled_color_channels == {1}
    # both channels of the pair take their material color from registers
    assert info.uniform_size == BASE_UNIFORM_SIZE + 32


def test_zero_channel_samples_nothing():
    assert _raw(_config(_ras_stage(ChannelId.COLOR_ZERO))).sampled_color_channels == set()


def test_lighting_adds_light_block():
    unlit = _raw(_config(_ras_stage(ChannelId.COLOR0A0)))
    lit_config = _config(_ras_stage(ChannelId.COLOR0A0))
    lit_config.color_channels[0] = ColorChannelConfig(lighting_enabled=True, amb_src=ColorSrc.REG)
    lit = _raw(lit_config)
    assert lit.uniform_size - unlit.uniform_size == 16 + 80 * MAX_LIGHTS + 16


def test_vertex_material_source_needs_no_uniform():
    config = _config(_ras_stage(ChannelId.COLOR0A0))
    config.color_channels[0] = ColorChannelConfig(mat_src=ColorSrc.VTX)
    config.color_channels[1] = ColorChannelConfig(mat_src=ColorSrc.VTX)
    assert _raw(config).uniform_size == BASE_UNIFORM_SIZE


def test_tex_matrix_usage():
    config = _config(_tex_stage(coord=0, tex_map=0))
    config.tcgs[0].mtx = TEXMTX0 + 3
    config.tcgs[0].type = TexGenType.MTX2X4
    info = _raw(config)
    assert info.uses_tex_mtx == {1}
    assert info.tex_mtx_types[1] == TexGenType.MTX2X4
    assert info.uniform_size == BASE_UNIFORM_SIZE + 4 + 32


def test_tex_matrix_3x4_is_larger():
    config = _config(_tex_stage())
    config.tcgs[0].mtx = TEXMTX0
    config.tcgs[0].type = TexGenType.MTX3X4
    assert _raw(config).uniform_size == BASE_UNIFORM_SIZE + 4 + 64


def test_post_matrix_usage():
    config = _config(_tex_stage())
    config.tcgs[0].post_mtx = PTTEXMTX0 + 6
    info = _raw(config)
    assert info.uses_pt_tex_mtx == {2}
    assert info.uses_tex_mtx == set()
    assert config.tcgs[0].mtx == IDENTITY
    assert info.uniform_size == BASE_UNIFORM_SIZE + 4 + 64


def test_fog():
    info = _raw(ShaderConfig(fog_type=FogType.PERSP_EXP))
    assert info.uses_fog
    assert info.uniform_size == BASE_UNIFORM_SIZE + 32


def test_stages_beyond_count_are_ignored():
    config = _config()
    config.tev_stages[0] = _tex_stage(coord=0xFF)
    assert _raw(config).sampled_textures == set()


def test_alpha_compare_truth():
    assert not AlphaCompare()
    assert AlphaCompare(comp0=Compare.GREATER, ref0=10)
    assert AlphaCompare(comp1=Compare.NEVER)


@given(st.integers(min_value=0, max_value=10).map(lambda n: 1 << n), st.sampled_from(list(FogType)))
def test_alignment_invariant(alignment, fog):
    config = ShaderConfig(fog_type=fog)
    aligned = build_shader_info(config, alignment).uniform_size
    raw = _raw(config).uniform_size
    assert aligned % alignment == 0
    assert raw <= aligned < raw + alignment


def test_bad_alignment_rejected():
    with pytest.raises(ValueError):
        build_shader_info(ShaderConfig(), 48)