"""Configuration of the GX fixed-function pipeline and the shader facts derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import NoReturn, Optional

from gxrender.errors import LogLevel, Reporter, align
from gxrender.texture_convert import TextureFormat

_log = Reporter("gxrender.gx")

MAX_TEV_STAGES = 16
MAX_TEV_SWAP = 4
MAX_COLOR_CHANNELS = 4
MAX_TEX_COORDS = 8
MAX_TEX_MAPS = 8
MAX_K_COLORS = 4
MAX_TEV_REGS = 4
MAX_TEX_MTX = 10
MAX_PT_TEX_MTX = 20
MAX_LIGHTS = 8
MAX_VTX_ATTR = 26

TEXMAP_NULL = 0xFF
TEXCOORD_NULL = 0xFF

TEXMTX0 = 30
IDENTITY = 60
PTTEXMTX0 = 64
PTIDENTITY = 125

BASE_UNIFORM_SIZE = 64 * 3  # position, normal and projection matrices
DEFAULT_UNIFORM_ALIGNMENT = 256


def _fatal(message: str) -> NoReturn:
    _log.report(LogLevel.FATAL, message)
    raise AssertionError("unreachable")


class TevColorArg(IntEnum):
    CPREV = 0
    APREV = 1
    C0 = 2
    A0 = 3
    C1 = 4
    A1 = 5
    C2 = 6
    A2 = 7
    TEXC = 8
    TEXA = 9
    RASC = 10
    RASA = 11
    ONE = 12
    HALF = 13
    KONST = 14
    ZERO = 15


class TevAlphaArg(IntEnum):
    APREV = 0
    A0 = 1
    A1 = 2
    A2 = 3
    TEXA = 4
    RASA = 5
    KONST = 6
    ZERO = 7


class TevRegId(IntEnum):
    TEVPREV = 0
    TEVREG0 = 1
    TEVREG1 = 2
    TEVREG2 = 3


class KColorSel(IntEnum):
    CONST_8_8 = 0x00
    CONST_7_8 = 0x01
    CONST_6_8 = 0x02
    CONST_5_8 = 0x03
    CONST_4_8 = 0x04
    CONST_3_8 = 0x05
    CONST_2_8 = 0x06
    CONST_1_8 = 0x07
    K0 = 0x0C
    K1 = 0x0D
    K2 = 0x0E
    K3 = 0x0F
    K0_R = 0x10
    K1_R = 0x11
    K2_R = 0x12
    K3_R = 0x13
    K0_G = 0x14
    K1_G = 0x15
    K2_G = 0x16
    K3_G = 0x17
    K0_B = 0x18
    K1_B = 0x19
    K2_B = 0x1A
    K3_B = 0x1B
    K0_A = 0x1C
    K1_A = 0x1D
    K2_A = 0x1E
    K3_A = 0x1F


class KAlphaSel(IntEnum):
    CONST_8_8 = 0x00
    CONST_7_8 = 0x01
    CONST_6_8 = 0x02
    CONST_5_8 = 0x03
    CONST_4_8 = 0x04
    CONST_3_8 = 0x05
    CONST_2_8 = 0x06
    CONST_1_8 = 0x07
    K0_R = 0x10
    K1_R = 0x11
    K2_R = 0x12
    K3_R = 0x13
    K0_G = 0x14
    K1_G = 0x15
    K2_G = 0x16
    K3_G = 0x17
    K0_B = 0x18
    K1_B = 0x19
    K2_B = 0x1A
    K3_B = 0x1B
    K0_A = 0x1C
    K1_A = 0x1D
    K2_A = 0x1E
    K3_A = 0x1F


def _konst_indices(enum_type) -> dict[int, int]:
    return {
        member: int(member.name[1])
        for member in enum_type
        if member.name.startswith("K") and member.name[1].isdigit()
    }


_KCOLOR_INDEX = _konst_indices(KColorSel)
_KALPHA_INDEX = _konst_indices(KAlphaSel)


class ChannelId(IntEnum):
    COLOR0 = 0
    COLOR1 = 1
    ALPHA0 = 2
    ALPHA1 = 3
    COLOR0A0 = 4
    COLOR1A1 = 5
    COLOR_ZERO = 6
    ALPHA_BUMP = 7
    ALPHA_BUMPN = 8
    COLOR_NULL = 0xFF


class ColorSrc(IntEnum):
    REG = 0
    VTX = 1


class AttrType(IntEnum):
    NONE = 0
    DIRECT = 1
    INDEX8 = 2
    INDEX16 = 3


class VtxAttr(IntEnum):
    PN_MTX_IDX = 0
    TEX0_MTX_IDX = 1
    TEX1_MTX_IDX = 2
    TEX2_MTX_IDX = 3
    TEX3_MTX_IDX = 4
    TEX4_MTX_IDX = 5
    TEX5_MTX_IDX = 6
    TEX6_MTX_IDX = 7
    TEX7_MTX_IDX = 8
    POS = 9
    NRM = 10
    CLR0 = 11
    CLR1 = 12
    TEX0 = 13
    TEX1 = 14
    TEX2 = 15
    TEX3 = 16
    TEX4 = 17
    TEX5 = 18
    TEX6 = 19
    TEX7 = 20
    POS_MTX_ARRAY = 21
    NRM_MTX_ARRAY = 22
    TEX_MTX_ARRAY = 23
    LIGHT_ARRAY = 24
    NBT = 25


VTX_ATTRIBUTE_NAMES = (
    "pn_mtx", "tex0_mtx", "tex1_mtx", "tex2_mtx", "tex3_mtx", "tex4_mtx", "tex5_mtx",
    "tex6_mtx", "tex7_mtx", "pos", "nrm", "clr0", "clr1", "tex0_uv",
    "tex1_uv", "tex2_uv", "tex3_uv", "tex4_uv", "tex5_uv", "tex6_uv", "tex7_uv",
    "pos_mtx_array", "nrm_mtx_array", "tex_mtx_array", "light_array", "nbt",
)


class TexGenSrc(IntEnum):
    POS = 0
    NRM = 1
    BINRM = 2
    TANGENT = 3
    TEX0 = 4
    TEX1 = 5
    TEX2 = 6
    TEX3 = 7
    TEX4 = 8
    TEX5 = 9
    TEX6 = 10
    TEX7 = 11
    TEXCOORD0 = 12
    TEXCOORD1 = 13
    TEXCOORD2 = 14
    TEXCOORD3 = 15
    TEXCOORD4 = 16
    TEXCOORD5 = 17
    TEXCOORD6 = 18
    COLOR0 = 19
    COLOR1 = 20
    MAX = 0xFF


class TexGenType(IntEnum):
    MTX3X4 = 0
    MTX2X4 = 1
    BUMP0 = 2
    BUMP1 = 3
    BUMP2 = 4
    BUMP3 = 5
    BUMP4 = 6
    BUMP5 = 7
    BUMP6 = 8
    BUMP7 = 9
    SRTG = 10


class DiffuseFn(IntEnum):
    NONE = 0
    SIGN = 1
    CLAMP = 2


class AttnFn(IntEnum):
    SPEC = 0
    SPOT = 1
    NONE = 2


class Compare(IntEnum):
    NEVER = 0
    LESS = 1
    EQUAL = 2
    LEQUAL = 3
    GREATER = 4
    NEQUAL = 5
    GEQUAL = 6
    ALWAYS = 7


class AlphaOp(IntEnum):
    AND = 0
    OR = 1
    XOR = 2
    XNOR = 3


class FogType(IntEnum):
    NONE = 0x00
    PERSP_LIN = 0x02
    PERSP_EXP = 0x04
    PERSP_EXP2 = 0x05
    PERSP_REVEXP = 0x06
    PERSP_REVEXP2 = 0x07
    ORTHO_LIN = 0x0A
    ORTHO_EXP = 0x0C
    ORTHO_EXP2 = 0x0D
    ORTHO_REVEXP = 0x0E
    ORTHO_REVEXP2 = 0x0F


class TevOp(IntEnum):
    ADD = 0
    SUB = 1
    COMP_R8_GT = 8
    COMP_R8_EQ = 9
    COMP_GR16_GT = 10
    COMP_GR16_EQ = 11
    COMP_BGR24_GT = 12
    COMP_BGR24_EQ = 13
    COMP_RGB8_GT = 14
    COMP_RGB8_EQ = 15


class TevBias(IntEnum):
    ZERO = 0
    ADDHALF = 1
    SUBHALF = 2


class TevScale(IntEnum):
    SCALE_1 = 0
    SCALE_2 = 1
    SCALE_4 = 2
    DIVIDE_2 = 3


class TevColorChan(IntEnum):
    RED = 0
    GREEN = 1
    BLUE = 2
    ALPHA = 3


@dataclass
class TevSwap:
    """Channel order applied to a texture or rasterized color."""

    red: TevColorChan = TevColorChan.RED
    green: TevColorChan = TevColorChan.GREEN
    blue: TevColorChan = TevColorChan.BLUE
    alpha: TevColorChan = TevColorChan.ALPHA


@dataclass
class TevPass:
    """The four inputs of a TEV combiner: ``mix(a, b, c) + d``."""

    a: int
    b: int
    c: int
    d: int


def _color_pass() -> TevPass:
    return TevPass(TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.ZERO, TevColorArg.ZERO)


def _alpha_pass() -> TevPass:
    return TevPass(TevAlphaArg.ZERO, TevAlphaArg.ZERO, TevAlphaArg.ZERO, TevAlphaArg.ZERO)


@dataclass
class TevOpConfig:
    """How a TEV combiner result is biased, scaled, clamped and stored."""

    op: TevOp = TevOp.ADD
    bias: TevBias = TevBias.ZERO
    scale: TevScale = TevScale.SCALE_1
    out_reg: TevRegId = TevRegId.TEVPREV
    clamp: bool = True


@dataclass
class TevStage:
    """One texture environment stage."""

    color_pass: TevPass = field(default_factory=_color_pass)
    alpha_pass: TevPass = field(default_factory=_alpha_pass)
    color_op: TevOpConfig = field(default_factory=TevOpConfig)
    alpha_op: TevOpConfig = field(default_factory=TevOpConfig)
    kc_sel: KColorSel = KColorSel.CONST_8_8
    ka_sel: KAlphaSel = KAlphaSel.CONST_8_8
    tex_coord_id: int = TEXCOORD_NULL
    tex_map_id: int = TEXMAP_NULL
    channel_id: ChannelId = ChannelId.COLOR_NULL
    tev_swap_ras: int = 0
    tev_swap_tex: int = 0


@dataclass
class ColorChannelConfig:
    """Lighting setup of one color or alpha channel."""

    mat_src: ColorSrc = ColorSrc.REG
    amb_src: ColorSrc = ColorSrc.REG
    diff_fn: DiffuseFn = DiffuseFn.NONE
    attn_fn: AttnFn = AttnFn.NONE
    lighting_enabled: bool = False


@dataclass
class TcgConfig:
    """Texture coordinate generation for one texture coordinate."""

    type: TexGenType = TexGenType.MTX2X4
    src: TexGenSrc = TexGenSrc.MAX
    mtx: int = IDENTITY
    post_mtx: int = PTIDENTITY
    normalize: bool = False


@dataclass
class AlphaCompare:
    """Two alpha tests combined with a logic operation."""

    comp0: Compare = Compare.ALWAYS
    ref0: int = 0
    op: AlphaOp = AlphaOp.AND
    comp1: Compare = Compare.ALWAYS
    ref1: int = 0

    def __bool__(self) -> bool:
        return self.comp0 != Compare.ALWAYS or self.comp1 != Compare.ALWAYS


@dataclass
class TextureConfig:
    """Formats of a bound texture; None where a format is not set."""

    copy_fmt: Optional[int] = None
    load_fmt: Optional[int] = None
    render_tex: bool = False


def _default_swap_table() -> list[TevSwap]:
    r, g, b, a = TevColorChan.RED, TevColorChan.GREEN, TevColorChan.BLUE, TevColorChan.ALPHA
    return [TevSwap(), TevSwap(r, r, r, a), TevSwap(g, g, g, a), TevSwap(b, b, b, a)]


@dataclass
class ShaderConfig:
    """Everything about the pipeline state that changes the generated shader."""

    fog_type: FogType = FogType.NONE
    vtx_attrs: list = field(default_factory=lambda: [AttrType.NONE] * MAX_VTX_ATTR)
    attr_mapping: list = field(default_factory=lambda: [VtxAttr(i) for i in range(MAX_VTX_ATTR)])
    tev_swap_table: list = field(default_factory=_default_swap_table)
    tev_stages: list = field(default_factory=lambda: [TevStage() for _ in range(MAX_TEV_STAGES)])
    tev_stage_count: int = 0
    color_channels: list = field(
        default_factory=lambda: [ColorChannelConfig() for _ in range(MAX_COLOR_CHANNELS)]
    )
    tcgs: list = field(default_factory=lambda: [TcgConfig() for _ in range(MAX_TEX_COORDS)])
    alpha_compare: AlphaCompare = field(default_factory=AlphaCompare)
    indexed_attribute_count: int = 0
    texture_config: list = field(default_factory=lambda: [TextureConfig() for _ in range(MAX_TEX_MAPS)])


@dataclass
class ShaderInfo:
    """Resources a shader reads, and the size of its uniform block."""

    sampled_tex_coords: set = field(default_factory=set)
    sampled_textures: set = field(default_factory=set)
    sampled_k_colors: set = field(default_factory=set)
    sampled_color_channels: set = field(default_factory=set)
    loads_tev_reg: set = field(default_factory=set)
    writes_tev_reg: set = field(default_factory=set)
    uses_tex_mtx: set = field(default_factory=set)
    uses_pt_tex_mtx: set = field(default_factory=set)
    tex_mtx_types: dict = field(default_factory=dict)
    uniform_size: int = 0
    uses_fog: bool = False


_PALETTE_FORMATS = frozenset({TextureFormat.C4, TextureFormat.C8, TextureFormat.C14X2})

_ALPHA_FORMATS = frozenset({
    TextureFormat.IA4,
    TextureFormat.IA8,
    TextureFormat.RGB5A3,
    TextureFormat.RGBA8,
    TextureFormat.CMPR,
    TextureFormat.CTF_RA4,
    TextureFormat.CTF_RA8,
    TextureFormat.CTF_YUVA8,
    TextureFormat.CTF_A8,
    TextureFormat.RGBA8_PC,
})


def is_palette_format(format: Optional[int]) -> bool:
    """True for color-indexed texture formats."""
    return format in _PALETTE_FORMATS


def format_has_alpha(format: Optional[int]) -> bool:
    """True for texture formats that carry an alpha channel."""
    return format in _ALPHA_FORMATS


def _load_unless_written(info: ShaderInfo, reg: TevRegId) -> None:
    if reg not in info.writes_tev_reg:
        info.loads_tev_reg.add(reg)


def _sample_texture(stage: TevStage, info: ShaderInfo) -> None:
    if stage.tex_coord_id == TEXCOORD_NULL:
        _fatal("tex coord not bound")
    if stage.tex_map_id == TEXMAP_NULL:
        _fatal("tex map not bound")
    info.sampled_tex_coords.add(stage.tex_coord_id)
    info.sampled_textures.add(stage.tex_map_id)


def _sample_channel(stage: TevStage, info: ShaderInfo) -> None:
    if ChannelId.COLOR0A0 <= stage.channel_id <= ChannelId.COLOR1A1:
        info.sampled_color_channels.add(stage.channel_id - ChannelId.COLOR0A0)


_COLOR_ARG_REGS = {
    TevColorArg.CPREV: TevRegId.TEVPREV,
    TevColorArg.APREV: TevRegId.TEVPREV,
    TevColorArg.C0: TevRegId.TEVREG0,
    TevColorArg.A0: TevRegId.TEVREG0,
    TevColorArg.C1: TevRegId.TEVREG1,
    TevColorArg.A1: TevRegId.TEVREG1,
    TevColorArg.C2: TevRegId.TEVREG2,
    TevColorArg.A2: TevRegId.TEVREG2,
}

_ALPHA_ARG_REGS = {
    TevAlphaArg.APREV: TevRegId.TEVPREV,
    TevAlphaArg.A0: TevRegId.TEVREG0,
    TevAlphaArg.A1: TevRegId.TEVREG1,
    TevAlphaArg.A2: TevRegId.TEVREG2,
}


def _color_arg_info(arg: int, stage: TevStage, info: ShaderInfo) -> None:
    if arg in _COLOR_ARG_REGS:
        _load_unless_written(info, _COLOR_ARG_REGS[arg])
    elif arg in (TevColorArg.TEXC, TevColorArg.TEXA):
        _sample_texture(stage, info)
    elif arg in (TevColorArg.RASC, TevColorArg.RASA):
        _sample_channel(stage, info)
    elif arg == TevColorArg.KONST and stage.kc_sel in _KCOLOR_INDEX:
        info.sampled_k_colors.add(_KCOLOR_INDEX[stage.kc_sel])


def _alpha_arg_info(arg: int, stage: TevStage, info: ShaderInfo) -> None:
    if arg in _ALPHA_ARG_REGS:
        _load_unless_written(info, _ALPHA_ARG_REGS[arg])
    elif arg == TevAlphaArg.TEXA:
        _sample_texture(stage, info)
    elif arg == TevAlphaArg.RASA:
        _sample_channel(stage, info)
    elif arg == TevAlphaArg.KONST and stage.ka_sel in _KALPHA_INDEX:
        info.sampled_k_colors.add(_KALPHA_INDEX[stage.ka_sel])


def _passes(p: TevPass) -> tuple[int, int, int, int]:
    return p.a, p.b, p.c, p.d


def _channel_pairs(config: ShaderConfig, info: ShaderInfo):
    for i in sorted(info.sampled_color_channels):
        yield config.color_channels[i * 2], config.color_channels[i * 2 + 1]


def build_shader_info(config: ShaderConfig, uniform_alignment: int = DEFAULT_UNIFORM_ALIGNMENT) -> ShaderInfo:
    """Work out which resources the shader for ``config`` uses and its uniform size."""
    info = ShaderInfo(uniform_size=BASE_UNIFORM_SIZE)
    for stage in config.tev_stages[:config.tev_stage_count]:
        for arg in _passes(stage.color_pass):
            _color_arg_info(arg, stage, info)
        info.writes_tev_reg.add(stage.color_op.out_reg)

        for arg in _passes(stage.alpha_pass):
            _alpha_arg_info(arg, stage, info)
        if stage.alpha_op.out_reg not in info.writes_tev_reg:
            # Alpha written to a register whose color is never written: load it from the uniform buffer.
            info.loads_tev_reg.add(stage.alpha_op.out_reg)
            info.writes_tev_reg.add(stage.alpha_op.out_reg)

    info.uniform_size += len(info.loads_tev_reg) * 16

    if any(cc.lighting_enabled or cca.lighting_enabled for cc, cca in _channel_pairs(config, info)):
        info.uniform_size += 16 + 80 * MAX_LIGHTS
    for pair in _channel_pairs(config, info):
        for channel in pair:
            if channel.lighting_enabled and channel.amb_src == ColorSrc.REG:
                info.uniform_size += 16
            if channel.mat_src == ColorSrc.REG:
                info.uniform_size += 16

    info.uniform_size += len(info.sampled_k_colors) * 16

    for i in sorted(info.sampled_tex_coords):
        tcg = config.tcgs[i]
        if tcg.mtx != IDENTITY:
            index = (tcg.mtx - TEXMTX0) // 3
            info.uses_tex_mtx.add(index)
            info.tex_mtx_types[index] = tcg.type
        if tcg.post_mtx != PTIDENTITY:
            info.uses_pt_tex_mtx.add((tcg.post_mtx - PTTEXMTX0) // 3)

    for index in sorted(info.uses_tex_mtx):
        mtx_type = info.tex_mtx_types.get(index)
        if mtx_type == TexGenType.MTX2X4:
            info.uniform_size += 32
        elif mtx_type == TexGenType.MTX3X4:
            info.uniform_size += 64

    info.uniform_size += len(info.uses_pt_tex_mtx) * 64
    if config.fog_type != FogType.NONE:
        info.uses_fog = True
        info.uniform_size += 32
    info.uniform_size += len(info.sampled_textures) * 4
    info.uniform_size = align(info.uniform_size, uniform_alignment)
    return info