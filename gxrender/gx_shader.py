"""WGSL source generation for the GX fixed-function pipeline."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import NoReturn, Optional

from gxrender.errors import LogLevel, Reporter
from gxrender.gx_config import (
    IDENTITY,
    MAX_LIGHTS,
    MAX_TEV_REGS,
    MAX_VTX_ATTR,
    PTIDENTITY,
    PTTEXMTX0,
    TEXCOORD_NULL,
    TEXMAP_NULL,
    TEXMTX0,
    VTX_ATTRIBUTE_NAMES,
    AlphaOp,
    AttnFn,
    AttrType,
    ColorChannelConfig,
    ColorSrc,
    DiffuseFn,
    FogType,
    ShaderConfig,
    ShaderInfo,
    TevRegId,
    TexGenSrc,
    TexGenType,
    VtxAttr,
    is_palette_format,
)
from gxrender.gx_exprs import (
    alpha_arg_reg,
    alpha_compare,
    color_arg_reg,
    tev_bias,
    tev_op,
    tev_scale,
    texture_conversion,
    vtx_attr,
)
from gxrender.texture_convert import TextureFormat

_log = Reporter("gxrender.gx")


def _fatal(message: str) -> NoReturn:
    _log.report(LogLevel.FATAL, message)
    raise AssertionError("unreachable")


_SHADER_TEMPLATE = """
struct mtx4x4 {{ mx: vec4<f32>, my: vec4<f32>, mz: vec4<f32>, mw: vec4<f32> }};
struct mtx4x3 {{ mx: vec4<f32>, my: vec4<f32>, mz: vec4<f32>, mw: vec4<f32> }};
struct mtx4x2 {{ mx: vec4<f32>, my: vec4<f32>, }};
// Matrices are stored column major
fn mul4x4(m: mtx4x4, v: vec4<f32>) -> vec4<f32> {{
  var mx = vec4<f32>(m.mx.x, m.my.x, m.mz.x, m.mw.x);
  var my = vec4<f32>(m.mx.y, m.my.y, m.mz.y, m.mw.y);
  var mz = vec4<f32>(m.mx.z, m.my.z, m.mz.z, m.mw.z);
  var mw = vec4<f32>(m.mx.w, m.my.w, m.mz.w, m.mw.w);
  return vec4<f32>(dot(mx, v), dot(my, v), dot(mz, v), dot(mw, v));
}}
fn mul4x3(m: mtx4x3, v: vec4<f32>) -> vec3<f32> {{
  var mx = vec4<f32>(m.mx.x, m.my.x, m.mz.x, m.mw.x);
  var my = vec4<f32>(m.mx.y, m.my.y, m.mz.y, m.mw.y);
  var mz = vec4<f32>(m.mx.z, m.my.z, m.mz.z, m.mw.z);
  return vec3<f32>(dot(mx, v), dot(my, v), dot(mz, v));
}}
fn mul4x2(m: mtx4x2, v: vec4<f32>) -> vec2<f32> {{
  return vec2<f32>(dot(m.mx, v), dot(m.my, v));
}}
{uniform_pre}
struct Uniform {{
    pos_mtx: mtx4x3,
    nrm_mtx: mtx4x3,
    proj: mtx4x4,{uni_buf_attrs}
}};
@group(0) @binding(0)
var<uniform> ubuf: Uniform;{uniform_bindings}{samp_bindings}{tex_bindings}

struct VertexOutput {{
    @builtin(position) pos: vec4<f32>,{vtx_out_attrs}
}};

fn intensityF32(rgb: vec3<f32>) -> f32 {{
    // RGB to intensity conversion
    return dot(rgb, vec3(0.257, 0.504, 0.098)) + 16.0 / 255.0;
}}
fn intensityI4(rgb: vec3<f32>) -> i32 {{
    return i32(intensityF32(rgb) * 16.f);
}}
fn textureSamplePalette(tex: texture_2d<i32>, samp: sampler, uv: vec2<f32>, tlut: texture_2d<f32>) -> vec4<f32> {{
    // Gather index values
    var i = textureGather(0, tex, samp, uv);
    // Load palette colors
    var c0 = textureLoad(tlut, vec2<i32>(i[0], 0), 0);
    var c1 = textureLoad(tlut, vec2<i32>(i[1], 0), 0);
    var c2 = textureLoad(tlut, vec2<i32>(i[2], 0), 0);
    var c3 = textureLoad(tlut, vec2<i32>(i[3], 0), 0);
    // Perform bilinear filtering
    var f = fract(uv * vec2<f32>(textureDimensions(tex)) + 0.5);
    var t0 = mix(c3, c2, f.x);
    var t1 = mix(c0, c1, f.x);
    return mix(t0, t1, f.y);
}}
fn textureSamplePaletteI4(tex: texture_2d<f32>, samp: sampler, uv: vec2<f32>, tlut: texture_2d<f32>) -> vec4<f32> {{
    // Gather RGB channels
    var iR = textureGather(0, tex, samp, uv);
    var iG = textureGather(1, tex, samp, uv);
    var iB = textureGather(2, tex, samp, uv);
    // Perform intensity conversion
    var i0 = intensityI4(vec3<f32>(iR[0], iG[0], iB[0]));
    var i1 = intensityI4(vec3<f32>(iR[1], iG[1], iB[1]));
    var i2 = intensityI4(vec3<f32>(iR[2], iG[2], iB[2]));
    var i3 = intensityI4(vec3<f32>(iR[3], iG[3], iB[3]));
    // Load palette colors
    var c0 = textureLoad(tlut, vec2<i32>(i0, 0), 0);
    var c1 = textureLoad(tlut, vec2<i32>(i1, 0), 0);
    var c2 = textureLoad(tlut, vec2<i32>(i2, 0), 0);
    var c3 = textureLoad(tlut, vec2<i32>(i3, 0), 0);
    // Perform bilinear filtering
    var f = fract(uv * vec2<f32>(textureDimensions(tex)) + 0.5);
    var t0 = mix(c3, c2, f.x);
    var t1 = mix(c0, c1, f.x);
    return mix(t0, t1, f.y);
}}

@vertex
fn vs_main({vtx_in_attrs}
) -> VertexOutput {{
    var out: VertexOutput;{vtx_xfr_attrs_pre}{vtx_xfr_attrs}
    return out;
}}

@fragment
fn fs_main(in: VertexOutput) -> @location(0) vec4<f32> {{{fragment_fn_pre}{fragment_fn}
    return prev;
}}
"""

_LIGHT_STRUCT = (
    "\n"
    "struct Light {\n"
    "    pos: vec3<f32>,\n"
    "    dir: vec3<f32>,\n"
    "    color: vec4<f32>,\n"
    "    cos_att: vec3<f32>,\n"
    "    dist_att: vec3<f32>,\n"
    "};"
)

_FOG_STRUCT = (
    "\n"
    "struct Fog {\n"
    "    color: vec4<f32>,\n"
    "    a: f32,\n"
    "    b: f32,\n"
    "    c: f32,\n"
    "    pad: f32,\n"
    "}"
)

_SPOT_ATTENUATION = """
          var cosine = max(0.0, dot(ldir, light.dir));
          var cos_attn = dot(light.cos_att, vec3<f32>(1.0, cosine, cosine * cosine));
          var dist_attn = dot(light.dist_att, vec3<f32>(1.0, dist, dist2));
          attn = max(0.0, cos_attn / dist_attn);"""

_DIFFUSE_FNS = {
    DiffuseFn.NONE: "1.0",
    DiffuseFn.SIGN: "dot(ldir, in.mv_nrm)",
    DiffuseFn.CLAMP: "max(0.0, dot(ldir, in.mv_nrm))",
}

_COLOR_OUT_REGS = {
    TevRegId.TEVPREV: "prev",
    TevRegId.TEVREG0: "tevreg0",
    TevRegId.TEVREG1: "tevreg1",
    TevRegId.TEVREG2: "tevreg2",
}

_ALPHA_OUT_REGS = {reg: f"{name}.a" for reg, name in _COLOR_OUT_REGS.items()}

_FOG_FNS = {
    FogType.PERSP_LIN: "\n    var fogZ = fogF;",
    FogType.ORTHO_LIN: "\n    var fogZ = fogF;",
    FogType.PERSP_EXP: "\n    var fogZ = 1.0 - exp2(-8.0 * fogF);",
    FogType.ORTHO_EXP: "\n    var fogZ = 1.0 - exp2(-8.0 * fogF);",
    FogType.PERSP_EXP2: "\n    var fogZ = 1.0 - exp2(-8.0 * fogF * fogF);",
    FogType.ORTHO_EXP2: "\n    var fogZ = 1.0 - exp2(-8.0 * fogF * fogF);",
    FogType.PERSP_REVEXP: "\n    var fogZ = exp2(-8.0 * (1.0 - fogF));",
    FogType.ORTHO_REVEXP: "\n    var fogZ = exp2(-8.0 * (1.0 - fogF));",
    FogType.PERSP_REVEXP2: "\n    fogF = 1.0 - fogF;\n    var fogZ = exp2(-8.0 * fogF * fogF);",
    FogType.ORTHO_REVEXP2: "\n    fogF = 1.0 - fogF;\n    var fogZ = exp2(-8.0 * fogF * fogF);",
}

_ALPHA_COMPARE_TESTS = {
    AlphaOp.AND: "\n    if (!({} && {})) {{ discard; }}",
    AlphaOp.OR: "\n    if (!({} || {})) {{ discard; }}",
    AlphaOp.XOR: "\n    if (!({} ^^ {})) {{ discard; }}",
    AlphaOp.XNOR: "\n    if (({} ^^ {})) {{ discard; }}",
}


@dataclass
class _Parts:
    """Pieces of shader text gathered while walking the configuration."""

    uniform_pre: str = ""
    uni_buf_attrs: str = ""
    uniform_bindings: str = ""
    samp_bindings: str = ""
    tex_bindings: str = ""
    vtx_out_attrs: str = ""
    vtx_in_attrs: str = ""
    vtx_xfr_attrs_pre: str = ""
    vtx_xfr_attrs: str = ""
    fragment_fn_pre: str = ""
    fragment_fn: str = ""
    in_location: int = 0
    out_location: int = 0

    def add_input(self, decl: Optional[str]) -> None:
        self.vtx_in_attrs += "\n    , " if self.in_location > 0 else "\n    "
        if decl is not None:
            self.vtx_in_attrs += f"@location({self.in_location}) {decl}"
            self.in_location += 1

    def add_output(self, decl: str) -> None:
        self.vtx_out_attrs += f"\n    @location({self.out_location}) {decl},"
        self.out_location += 1

    def render(self) -> str:
        return _SHADER_TEMPLATE.format(
            uniform_pre=self.uniform_pre,
            uni_buf_attrs=self.uni_buf_attrs,
            uniform_bindings=self.uniform_bindings,
            samp_bindings=self.samp_bindings,
            tex_bindings=self.tex_bindings,
            vtx_out_attrs=self.vtx_out_attrs,
            vtx_in_attrs=self.vtx_in_attrs,
            vtx_xfr_attrs_pre=self.vtx_xfr_attrs_pre,
            vtx_xfr_attrs=self.vtx_xfr_attrs,
            fragment_fn_pre=self.fragment_fn_pre,
            fragment_fn=self.fragment_fn,
        )


def _indexed_inputs(parts: _Parts, config: ShaderConfig) -> None:
    uniform_binding = 1
    count = 0
    for attr in range(MAX_VTX_ATTR):
        if config.vtx_attrs[attr] not in (AttrType.INDEX8, AttrType.INDEX16):
            continue
        div, rem = divmod(count, 4)
        mapped = config.attr_mapping[attr]
        add_binding = mapped == attr
        name = VTX_ATTRIBUTE_NAMES[attr if add_binding else mapped]
        parts.vtx_xfr_attrs_pre += (
            f"\n    var {vtx_attr(config, attr)} = v_arr_{name}[in_dl{div}[{rem}]];"
        )
        if add_binding:
            if attr in (VtxAttr.POS, VtxAttr.NRM):
                arr_type = "vec3<f32>"
            elif VtxAttr.TEX0 <= attr <= VtxAttr.TEX7:
                arr_type = "vec2<f32>"
            else:
                arr_type = ""
            parts.uniform_bindings += (
                f"\n@group(0) @binding({uniform_binding})"
                f"\nvar<storage, read> v_arr_{name}: array<{arr_type}>;"
            )
            uniform_binding += 1
        count += 1

    num4, rem = divmod(count, 4)
    num2 = 0
    if rem > 2:
        num4 += 1
    elif rem > 0:
        num2 = 1
    for i in range(num4):
        parts.add_input(f"in_dl{i}: vec4<i32>")
    for i in range(num2):
        parts.add_input(f"in_dl{num4 + i}: vec2<i32>")


def _direct_input(attr: int) -> Optional[str]:
    if attr == VtxAttr.POS:
        return "in_pos: vec3<f32>"
    if attr == VtxAttr.NRM:
        return "in_nrm: vec3<f32>"
    if attr in (VtxAttr.CLR0, VtxAttr.CLR1):
        return f"in_clr{attr - VtxAttr.CLR0}: vec4<f32>"
    if VtxAttr.TEX0 <= attr <= VtxAttr.TEX7:
        return f"in_tex{attr - VtxAttr.TEX0}_uv: vec2<f32>"
    return None


def _tev_stages(parts: _Parts, config: ShaderConfig) -> None:
    for idx, stage in enumerate(config.tev_stages[:config.tev_stage_count]):
        out_reg = _COLOR_OUT_REGS.get(stage.color_op.out_reg)
        if out_reg is None:
            _fatal(f"invalid colorOp outReg {int(stage.color_op.out_reg)}")
        a, b, c, d = (
            color_arg_reg(arg, idx, config, stage)
            for arg in (stage.color_pass.a, stage.color_pass.b, stage.color_pass.c, stage.color_pass.d)
        )
        op = (
            f"(({tev_op(stage.color_op.op)}mix({a}, {b}, {c}) + {d})"
            f"{tev_bias(stage.color_op.bias)}){tev_scale(stage.color_op.scale)}"
        )
        if stage.color_op.clamp:
            op = f"clamp({op}, vec3<f32>(0.0), vec3<f32>(1.0))"
        parts.fragment_fn += f"\n    // TEV stage {idx}\n    {out_reg} = vec4<f32>({op}, {out_reg}.a);"

        out_reg = _ALPHA_OUT_REGS.get(stage.alpha_op.out_reg)
        if out_reg is None:
            _fatal(f"invalid alphaOp outReg {int(stage.alpha_op.out_reg)}")
        a, b, c, d = (
            alpha_arg_reg(arg, idx, config, stage)
            for arg in (stage.alpha_pass.a, stage.alpha_pass.b, stage.alpha_pass.c, stage.alpha_pass.d)
        )
        op = (
            f"(({tev_op(stage.alpha_op.op)}mix({a}, {b}, {c}) + {d})"
            f"{tev_bias(stage.alpha_op.bias)}){tev_scale(stage.alpha_op.scale)}"
        )
        if stage.alpha_op.clamp:
            op = f"clamp({op}, 0.0, 1.0)"
        parts.fragment_fn += f"\n    {out_reg} = {op};"


def _tev_registers(parts: _Parts, info: ShaderInfo) -> None:
    if TevRegId.TEVPREV in info.loads_tev_reg:
        parts.uni_buf_attrs += "\n    tevprev: vec4<f32>,"
        parts.fragment_fn_pre += "\n    var prev = ubuf.tevprev;"
    else:
        parts.fragment_fn_pre += "\n    var prev: vec4<f32>;"
    for reg in range(1, MAX_TEV_REGS):
        if reg in info.loads_tev_reg:
            parts.uni_buf_attrs += f"\n    tevreg{reg - 1}: vec4<f32>,"
            parts.fragment_fn_pre += f"\n    var tevreg{reg - 1} = ubuf.tevreg{reg - 1};"
        elif reg in info.writes_tev_reg:
            parts.fragment_fn_pre += f"\n    var tevreg{reg - 1}: vec4<f32>;"


def _light_function(index: int, cc: ColorChannelConfig, vtx_color_idx: int) -> str:
    amb_src = mat_src = ""
    if cc.amb_src == ColorSrc.VTX:
        amb_src = f"in.clr{vtx_color_idx}"
    elif cc.amb_src == ColorSrc.REG:
        amb_src = f"ubuf.cc{index}_amb"
    if cc.mat_src == ColorSrc.VTX:
        mat_src = f"in.clr{vtx_color_idx}"
    elif cc.mat_src == ColorSrc.REG:
        mat_src = f"ubuf.cc{index}_mat"

    attn_fn = ""
    if cc.attn_fn == AttnFn.NONE:
        attn_fn = "attn = 1.0;"
    elif cc.attn_fn == AttnFn.SPOT:
        attn_fn = _SPOT_ATTENUATION
    elif cc.attn_fn == AttnFn.SPEC:
        _fatal("AF_SPEC unimplemented")
    diff_fn = _DIFFUSE_FNS.get(cc.diff_fn, "")

    return f"""
    {{
      var lighting = {amb_src};
      for (var i = 0u; i < {MAX_LIGHTS}u; i++) {{
          if ((ubuf.lightState{index} & (1u << i)) == 0u) {{ continue; }}
          var light = ubuf.lights[i];
          var ldir = light.pos - in.mv_pos;
          var dist2 = dot(ldir, ldir);
          var dist = sqrt(dist2);
          ldir = ldir / dist;
          var attn: f32;{attn_fn}
          var diff = {diff_fn};
          lighting = lighting + (attn * diff * light.color);
      }}
      // alpha lighting is not applied
      rast{index} = vec4<f32>(({mat_src} * clamp(lighting, vec4<f32>(0.0), vec4<f32>(1.0))).xyz, {mat_src}.a);
    }}"""


def _color_channels(parts: _Parts, config: ShaderConfig, info: ShaderInfo) -> None:
    added_light_struct = False
    vtx_color_idx = 0
    for i in sorted(info.sampled_color_channels):
        cc = config.color_channels[i * 2]
        cca = config.color_channels[i * 2 + 1]

        if not added_light_struct and (cc.lighting_enabled or cca.lighting_enabled):
            parts.uni_buf_attrs += (
                f"\n    lights: array<Light, {MAX_LIGHTS}>,"
                "\n    lightState0: u32,"
                "\n    lightState0a: u32,"
                "\n    lightState1: u32,"
                "\n    lightState1a: u32,"
            )
            parts.uniform_pre += _LIGHT_STRUCT
            parts.add_output("mv_pos: vec3<f32>")
            parts.add_output("mv_nrm: vec3<f32>")
            parts.vtx_xfr_attrs += "\n    out.mv_pos = mv_pos;\n    out.mv_nrm = mv_nrm;"
            added_light_struct = True

        if cc.lighting_enabled and cc.amb_src == ColorSrc.REG:
            parts.uni_buf_attrs += f"\n    cc{i}_amb: vec4<f32>,"
        if cc.mat_src == ColorSrc.REG:
            parts.uni_buf_attrs += f"\n    cc{i}_mat: vec4<f32>,"
        if cca.lighting_enabled and cca.amb_src == ColorSrc.REG:
            parts.uni_buf_attrs += f"\n    cc{i}a_amb: vec4<f32>,"
        if cca.mat_src == ColorSrc.REG:
            parts.uni_buf_attrs += f"\n    cc{i}a_mat: vec4<f32>,"

        uses_vtx_color = (
            (cc.lighting_enabled and cc.amb_src == ColorSrc.VTX)
            or cc.mat_src == ColorSrc.VTX
            or (cca.lighting_enabled and cca.mat_src == ColorSrc.VTX)
            or cca.mat_src == ColorSrc.VTX
        )
        if uses_vtx_color:
            parts.add_output(f"clr{vtx_color_idx}: vec4<f32>")
            parts.vtx_xfr_attrs += (
                f"\n    out.clr{vtx_color_idx} = {vtx_attr(config, VtxAttr.CLR0 + vtx_color_idx)};"
            )

        if cc.lighting_enabled:
            light_fn = _light_function(i, cc, vtx_color_idx)
            parts.fragment_fn_pre += f"\n    var rast{i}: vec4<f32>;" + light_fn
        elif cc.mat_src == ColorSrc.VTX:
            # The color was already written to the matching vertex output.
            parts.fragment_fn_pre += f"\n    var rast{vtx_color_idx} = in.clr{vtx_color_idx};"
        else:
            parts.fragment_fn_pre += f"\n    var rast{i} = ubuf.cc{i}_mat;"

        if uses_vtx_color:
            vtx_color_idx += 1


def _tex_coords(parts: _Parts, config: ShaderConfig, info: ShaderInfo) -> None:
    for i in sorted(info.sampled_tex_coords):
        tcg = config.tcgs[i]
        parts.add_output(f"tex{i}_uv: vec2<f32>")
        if TexGenSrc.TEX0 <= tcg.src <= TexGenSrc.TEX7:
            source_attr = VtxAttr.TEX0 + (tcg.src - TexGenSrc.TEX0)
            parts.vtx_xfr_attrs += f"\n    var tc{i} = vec4<f32>({vtx_attr(config, source_attr)}, 0.0, 1.0);"
        elif tcg.src == TexGenSrc.POS:
            parts.vtx_xfr_attrs += f"\n    var tc{i} = vec4<f32>(in_pos, 1.0);"
        elif tcg.src == TexGenSrc.NRM:
            parts.vtx_xfr_attrs += f"\n    var tc{i} = vec4<f32>(in_nrm, 1.0);"
        else:
            _fatal(f"unhandled tcg src {int(tcg.src)}")
        if tcg.mtx == IDENTITY:
            parts.vtx_xfr_attrs += f"\n    var tc{i}_tmp = tc{i}.xyz;"
        else:
            mtx_idx = (tcg.mtx - TEXMTX0) // 3
            kind = "4x3" if info.tex_mtx_types.get(mtx_idx) == TexGenType.MTX3X4 else "4x2"
            parts.vtx_xfr_attrs += f"\n    var tc{i}_tmp = mul{kind}(ubuf.texmtx{mtx_idx}, tc{i});"
        if tcg.normalize:
            parts.vtx_xfr_attrs += f"\n    tc{i}_tmp = normalize(tc{i}_tmp);"
        if tcg.post_mtx == PTIDENTITY:
            parts.vtx_xfr_attrs += f"\n    var tc{i}_proj = tc{i}_tmp;"
        else:
            post_idx = (tcg.post_mtx - PTTEXMTX0) // 3
            parts.vtx_xfr_attrs += (
                f"\n    var tc{i}_proj = mul4x3(ubuf.postmtx{post_idx}, vec4<f32>(tc{i}_tmp.xyz, 1.0));"
            )
        parts.vtx_xfr_attrs += f"\n    out.tex{i}_uv = tc{i}_proj.xy;"


def _texture_samples(parts: _Parts, config: ShaderConfig, info: ShaderInfo) -> None:
    # Every stage is inspected, not only the active ones.
    for i, stage in enumerate(config.tev_stages):
        if (
            stage.tex_map_id == TEXMAP_NULL
            or stage.tex_coord_id == TEXCOORD_NULL
            or stage.tex_map_id not in info.sampled_textures
        ):
            continue
        map_id = stage.tex_map_id
        uv_in = f"in.tex{stage.tex_coord_id}_uv"
        tex_config = config.texture_config[map_id]
        if is_palette_format(tex_config.load_fmt):
            suffix = ""
            if not is_palette_format(tex_config.copy_fmt):
                if tex_config.load_fmt != TextureFormat.C4:
                    _fatal(f"unimplemented palette format {int(tex_config.load_fmt)}")
                suffix = "I4"
            parts.fragment_fn_pre += (
                f"\n    var sampled{i} = textureSamplePalette{suffix}"
                f"(tex{map_id}, tex{map_id}_samp, {uv_in}, tlut{map_id});"
            )
        else:
            parts.fragment_fn_pre += (
                f"\n    var sampled{i} = textureSampleBias"
                f"(tex{map_id}, tex{map_id}_samp, {uv_in}, ubuf.tex{map_id}_lod);"
            )
        parts.fragment_fn_pre += texture_conversion(tex_config, i)


def _matrices(parts: _Parts, info: ShaderInfo) -> None:
    for i in sorted(info.uses_tex_mtx):
        mtx_type = info.tex_mtx_types.get(i)
        if mtx_type == TexGenType.MTX2X4:
            parts.uni_buf_attrs += f"\n    texmtx{i}: mtx4x2,"
        elif mtx_type == TexGenType.MTX3X4:
            parts.uni_buf_attrs += f"\n    texmtx{i}: mtx4x3,"
        else:
            _fatal(f"unhandled tex mtx type {int(mtx_type) if mtx_type is not None else -1}")
    for i in sorted(info.uses_pt_tex_mtx):
        parts.uni_buf_attrs += f"\n    postmtx{i}: mtx4x3,"


def _fog(parts: _Parts, config: ShaderConfig, info: ShaderInfo) -> None:
    if not info.uses_fog:
        return
    parts.uniform_pre += _FOG_STRUCT
    parts.uni_buf_attrs += "\n    fog: Fog,"
    parts.fragment_fn += (
        "\n    // Fog\n    var fogF = clamp((ubuf.fog.a / (ubuf.fog.b - in.pos.z)) - ubuf.fog.c, 0.0, 1.0);"
    )
    fog_fn = _FOG_FNS.get(config.fog_type)
    if fog_fn is None:
        _fatal(f"invalid fog type {int(config.fog_type)}")
    parts.fragment_fn += fog_fn
    parts.fragment_fn += "\n    prev = vec4<f32>(mix(prev.rgb, ubuf.fog.color.rgb, clamp(fogZ, 0.0, 1.0)), prev.a);"


def _texture_bindings(parts: _Parts, config: ShaderConfig, info: ShaderInfo) -> None:
    binding = 0
    for i in sorted(info.sampled_textures):
        parts.uni_buf_attrs += f"\n    tex{i}_lod: f32,"
        parts.samp_bindings += f"\n@group(1) @binding({binding})\nvar tex{i}_samp: sampler;"
        tex_config = config.texture_config[i]
        if is_palette_format(tex_config.load_fmt):
            sample_type = "i32" if is_palette_format(tex_config.copy_fmt) else "f32"
            parts.tex_bindings += f"\n@group(2) @binding({binding})\nvar tex{i}: texture_2d<{sample_type}>;"
            binding += 1
            parts.tex_bindings += f"\n@group(2) @binding({binding})\nvar tlut{i}: texture_2d<f32>;"
        else:
            parts.tex_bindings += f"\n@group(2) @binding({binding})\nvar tex{i}: texture_2d<f32>;"
        binding += 1


def _alpha_test(parts: _Parts, config: ShaderConfig) -> None:
    compare = config.alpha_compare
    if not compare:
        return
    comp0, valid0 = alpha_compare(compare.comp0, compare.ref0)
    comp1, valid1 = alpha_compare(compare.comp1, compare.ref1)
    if not (valid0 or valid1):
        return
    parts.fragment_fn += "\n    // Alpha compare"
    test = _ALPHA_COMPARE_TESTS.get(compare.op)
    if test is None:
        _fatal(f"invalid alpha compare op {int(compare.op)}")
    parts.fragment_fn += test.format(comp0, comp1)


def build_shader_source(config: ShaderConfig, info: ShaderInfo) -> str:
    """Generate the WGSL source of the shader for ``config``.

    ``info`` is the result of ``build_shader_info`` for the same configuration.
    """
    parts = _Parts()
    if config.indexed_attribute_count > 0:
        _indexed_inputs(parts, config)
    for attr in range(MAX_VTX_ATTR):
        if config.vtx_attrs[attr] == AttrType.DIRECT:
            parts.add_input(_direct_input(attr))
    parts.vtx_xfr_attrs_pre += (
        f"\n    var mv_pos = mul4x3(ubuf.pos_mtx, vec4<f32>({vtx_attr(config, VtxAttr.POS)}, 1.0));"
        f"\n    var mv_nrm = normalize(mul4x3(ubuf.nrm_mtx, vec4<f32>({vtx_attr(config, VtxAttr.NRM)}, 0.0)));"
        "\n    out.pos = mul4x4(ubuf.proj, vec4<f32>(mv_pos, 1.0));"
    )

    _tev_stages(parts, config)
    _tev_registers(parts, info)
    _color_channels(parts, config, info)
    for i in sorted(info.sampled_k_colors):
        parts.uni_buf_attrs += f"\n    kcolor{i}: vec4<f32>,"
    _tex_coords(parts, config, info)
    _texture_samples(parts, config, info)
    _matrices(parts, info)
    _fog(parts, config, info)
    _texture_bindings(parts, config, info)
    _alpha_test(parts, config)
    return parts.render()


class ShaderCache:
    """Generated shaders keyed by the configuration they were built from."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, ShaderInfo]] = {}

    def build(self, config: ShaderConfig, info: ShaderInfo) -> str:
        """Return the shader source for ``config``, generating it on first use."""
        key = repr(config)
        entry = self._entries.get(key)
        if entry is not None:
            return entry[0]
        source = build_shader_source(config, info)
        self._entries[key] = (source, copy.deepcopy(info))
        return source

    def __len__(self) -> int:
        return len(self._entries)