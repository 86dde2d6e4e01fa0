"""Shader expressions for individual pieces of GX pipeline state."""

from __future__ import annotations

import struct
from typing import NoReturn, Optional

from gxrender.errors import LogLevel, Reporter
from gxrender.gx_config import (
    AttrType,
    ChannelId,
    Compare,
    KAlphaSel,
    KColorSel,
    ShaderConfig,
    TEXMAP_NULL,
    TevAlphaArg,
    TevBias,
    TevColorArg,
    TevColorChan,
    TevOp,
    TevScale,
    TevStage,
    TextureConfig,
    VtxAttr,
    is_palette_format,
)
from gxrender.texture_convert import TextureFormat

_log = Reporter("gxrender.gx")

_MAX_TEXMAP = 7


def _fatal(message: str) -> NoReturn:
    _log.report(LogLevel.FATAL, message)
    raise AssertionError("unreachable")


def _as_enum(enum_type, value, message: str):
    try:
        return enum_type(value)
    except ValueError:
        _fatal(message.format(int(value)))


_CHAN_COMPS = {
    TevColorChan.RED: "r",
    TevColorChan.GREEN: "g",
    TevColorChan.BLUE: "b",
    TevColorChan.ALPHA: "a",
}


def chan_comp(chan) -> str:
    """Swizzle component for a TEV color channel; "?" if the channel is unknown."""
    return _CHAN_COMPS.get(chan, "?")


def _kcolor_expr(sel: KColorSel) -> str:
    name = sel.name
    if name.startswith("CONST_"):
        eighths = int(name[len("CONST_")])
        return "vec3<f32>(1.0)" if eighths == 8 else f"vec3<f32>({eighths}.0/8.0)"
    index = name[1]
    if len(name) == 2:
        return f"ubuf.kcolor{index}.rgb"
    return f"vec3<f32>(ubuf.kcolor{index}.{name[3].lower()})"


def _kalpha_expr(sel: KAlphaSel) -> str:
    name = sel.name
    if name.startswith("CONST_"):
        eighths = int(name[len("CONST_")])
        return "1.0" if eighths == 8 else f"({eighths}.0/8.0)"
    return f"ubuf.kcolor{name[1]}.{name[3].lower()}"


_KCOLOR_EXPRS = {sel: _kcolor_expr(sel) for sel in KColorSel}
_KALPHA_EXPRS = {sel: _kalpha_expr(sel) for sel in KAlphaSel}

_COLOR_ARG_EXPRS = {
    TevColorArg.CPREV: "prev.rgb",
    TevColorArg.APREV: "vec3<f32>(prev.a)",
    TevColorArg.C0: "tevreg0.rgb",
    TevColorArg.A0: "vec3<f32>(tevreg0.a)",
    TevColorArg.C1: "tevreg1.rgb",
    TevColorArg.A1: "vec3<f32>(tevreg1.a)",
    TevColorArg.C2: "tevreg2.rgb",
    TevColorArg.A2: "vec3<f32>(tevreg2.a)",
    TevColorArg.ONE: "vec3<f32>(1.0)",
    TevColorArg.HALF: "vec3<f32>(0.5)",
    TevColorArg.ZERO: "vec3<f32>(0.0)",
}

_ALPHA_ARG_EXPRS = {
    TevAlphaArg.APREV: "prev.a",
    TevAlphaArg.A0: "tevreg0.a",
    TevAlphaArg.A1: "tevreg1.a",
    TevAlphaArg.A2: "tevreg2.a",
    TevAlphaArg.ZERO: "0.0",
}


def _check_texture(stage: TevStage, stage_index: int) -> None:
    if stage.tex_map_id == TEXMAP_NULL:
        _fatal(f"unmapped texture for stage {stage_index}")
    if not 0 <= stage.tex_map_id <= _MAX_TEXMAP:
        _fatal(f"invalid texture {int(stage.tex_map_id)} for stage {stage_index}")


def _ras_index(stage: TevStage, stage_index: int) -> Optional[int]:
    """Index of the rasterized color for a stage, or None for the zero channel."""
    if stage.channel_id == ChannelId.COLOR_NULL:
        _fatal(f"unmapped color channel for stage {stage_index}")
    if stage.channel_id == ChannelId.COLOR_ZERO:
        return None
    if not ChannelId.COLOR0A0 <= stage.channel_id <= ChannelId.COLOR1A1:
        _fatal(f"invalid color channel {int(stage.channel_id)} for stage {stage_index}")
    return stage.channel_id - ChannelId.COLOR0A0


def color_arg_reg(arg, stage_index: int, config: ShaderConfig, stage: TevStage) -> str:
    """Expression for a TEV color input."""
    arg = _as_enum(TevColorArg, arg, "invalid color arg {}")
    if arg in _COLOR_ARG_EXPRS:
        return _COLOR_ARG_EXPRS[arg]
    if arg in (TevColorArg.TEXC, TevColorArg.TEXA):
        _check_texture(stage, stage_index)
        swap = config.tev_swap_table[stage.tev_swap_tex]
        if arg == TevColorArg.TEXC:
            return (
                f"sampled{stage_index}."
                f"{chan_comp(swap.red)}{chan_comp(swap.green)}{chan_comp(swap.blue)}"
            )
        return f"vec3<f32>(sampled{stage_index}.{chan_comp(swap.alpha)})"
    if arg in (TevColorArg.RASC, TevColorArg.RASA):
        index = _ras_index(stage, stage_index)
        if index is None:
            return "vec3<f32>(0.0)"
        swap = config.tev_swap_table[stage.tev_swap_ras]
        if arg == TevColorArg.RASC:
            return f"rast{index}.{chan_comp(swap.red)}{chan_comp(swap.green)}{chan_comp(swap.blue)}"
        return f"vec3<f32>(rast{index}.{chan_comp(swap.alpha)})"
    sel = _as_enum(KColorSel, stage.kc_sel, "invalid kcSel {}")
    return _KCOLOR_EXPRS[sel]


def alpha_arg_reg(arg, stage_index: int, config: ShaderConfig, stage: TevStage) -> str:
    """Expression for a TEV alpha input."""
    arg = _as_enum(TevAlphaArg, arg, "invalid alpha arg {}")
    if arg in _ALPHA_ARG_EXPRS:
        return _ALPHA_ARG_EXPRS[arg]
    if arg == TevAlphaArg.TEXA:
        _check_texture(stage, stage_index)
        swap = config.tev_swap_table[stage.tev_swap_tex]
        return f"sampled{stage_index}.{chan_comp(swap.alpha)}"
    if arg == TevAlphaArg.RASA:
        index = _ras_index(stage, stage_index)
        if index is None:
            return "0.0"
        swap = config.tev_swap_table[stage.tev_swap_ras]
        return f"rast{index}.{chan_comp(swap.alpha)}"
    sel = _as_enum(KAlphaSel, stage.ka_sel, "invalid kaSel {}")
    return _KALPHA_EXPRS[sel]


def tev_op(op) -> str:
    """Sign prefix for a TEV operation."""
    if op == TevOp.ADD:
        return ""
    if op == TevOp.SUB:
        return "-"
    _fatal(f"unimplemented tev op {int(op)}")


_BIASES = {TevBias.ZERO: "", TevBias.ADDHALF: " + 0.5", TevBias.SUBHALF: " - 0.5"}
_SCALES = {
    TevScale.SCALE_1: "",
    TevScale.SCALE_2: " * 2.0",
    TevScale.SCALE_4: " * 4.0",
    TevScale.DIVIDE_2: " / 2.0",
}


def tev_bias(bias) -> str:
    """Suffix adding a TEV bias."""
    if bias not in _BIASES:
        _fatal(f"invalid tev bias {int(bias)}")
    return _BIASES[bias]


def tev_scale(scale) -> str:
    """Suffix applying a TEV scale."""
    if scale not in _SCALES:
        _fatal(f"invalid tev scale {int(scale)}")
    return _SCALES[scale]


def _to_f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def _format_f32(value: float) -> str:
    """Shortest decimal text that reads back as the same 32-bit float."""
    target = _to_f32(value)
    for precision in range(1, 10):
        text = f"{target:.{precision}g}"
        if _to_f32(float(text)) == target:
            return text
    return repr(target)


_COMPARE_OPS = {
    Compare.LESS: "<",
    Compare.LEQUAL: "<=",
    Compare.EQUAL: "==",
    Compare.NEQUAL: "!=",
    Compare.GEQUAL: ">=",
    Compare.GREATER: ">",
}


def alpha_compare(comp, ref: int) -> tuple[str, bool]:
    """Expression for one alpha test against ``ref`` (0-255).

    Returns the expression and whether the test does anything: an ALWAYS
    test is reported as not valid.
    """
    if comp == Compare.NEVER:
        return "false", True
    if comp == Compare.ALWAYS:
        return "true", False
    if comp not in _COMPARE_OPS:
        _fatal(f"invalid alpha comp {int(comp)}")
    return f"(prev.a {_COMPARE_OPS[comp]} {_format_f32(ref / 255.0)}f)", True


def vtx_attr(config: ShaderConfig, attr) -> str:
    """Name of the shader variable that holds a vertex attribute."""
    attr = VtxAttr(attr)
    if config.vtx_attrs[attr] == AttrType.NONE:
        if attr == VtxAttr.NRM:
            return "vec3<f32>(1.0, 0.0, 0.0)"
        _fatal(f"unmapped vtx attr {int(attr)}")
    if attr == VtxAttr.POS:
        return "in_pos"
    if attr == VtxAttr.NRM:
        return "in_nrm"
    if attr in (VtxAttr.CLR0, VtxAttr.CLR1):
        return f"in_clr{attr - VtxAttr.CLR0}"
    if VtxAttr.TEX0 <= attr <= VtxAttr.TEX7:
        return f"in_tex{attr - VtxAttr.TEX0}_uv"
    _fatal(f"unhandled vtx attr {int(attr)}")


def texture_conversion(tex: TextureConfig, stage_index: int) -> str:
    """Statements that adjust a sampled texel to the texture's format."""
    out = []
    if tex.render_tex:
        if tex.copy_fmt == TextureFormat.RGB565:
            out.append(f"\n    sampled{stage_index}.a = 1.0;")
        elif tex.copy_fmt in (TextureFormat.I4, TextureFormat.I8) and not is_palette_format(tex.load_fmt):
            out.append(
                f"\n    sampled{stage_index} = "
                f"vec4<f32>(intensityF32(sampled{stage_index}.rgb), 0.f, 0.f, 1.f);"
            )
    if tex.load_fmt in (TextureFormat.I4, TextureFormat.I8, TextureFormat.R8_PC):
        out.append(f"\n    sampled{stage_index} = vec4<f32>(sampled{stage_index}.r);")
    return "".join(out)