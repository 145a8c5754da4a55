import logging

import pytest

from nodescribe.core.GraphPrimitives import Graph
from nodescribe.core.Types import NodeKind
from nodescribe.snapshot.deserialiser import DECLARATION_PIN
from nodescribe.synth.data_emitter import DataEmitter
from nodescribe.synth.templates import trailing_comment

from conftest import data_in, data_out


class TestDataEmitter:
    """Material-style graphs: topological order, sink order and dangling nodes."""

    def test_add_of_two_constants(self, material_graph, compactor):
        lines = DataEmitter(material_graph, compactor).render()

        assert lines == [
            "// --- Expressions ---",
            "float Constant_AA = 1.0; // [AA] (0,0)",
            "float Constant_AQ = 2.0; // [AQ] (0,0)",
            "auto Add_Ag = Constant_AA + Constant_AQ; // [Ag] (0,0)",
            "",
            "// --- Material Outputs ---",
            "P = Add_Ag; // [Aw] (0,0)",
        ]

    def test_sources_precede_consumers(self, material_graph):
        main, dangling = DataEmitter(material_graph).partition()
        assert main.index("c1") < main.index("add")
        assert main.index("c2") < main.index("add")
        assert dangling == []

    def test_empty_graph(self):
        assert DataEmitter(Graph("Empty", category="material")).render() == [
            "// (no expressions connected)",
        ]

    def test_only_dangling(self, builder):
        b = builder("M", category="material")
        b.add("c", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=3)
        lines = DataEmitter(b.build()).render()

        assert lines == [
            "// (no expressions connected)",
            "",
            "// --- Dangling (unconnected) ---",
            "float Constant_AA = 3.0; // [AA] (0,0)",
        ]

    def test_dangling_nodes_follow_outputs(self, builder, compactor, ann):
        b = builder("M", category="material")
        b.add("c1", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=1)
        b.add("sink", NodeKind.SINK, "MaterialOutput", [data_in("Roughness")])
        b.add("lonely", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")],
              y=300, value=0.25)
        b.add("p", NodeKind.PARAMETER, "MaterialExpressionScalarParameter", [data_out("Output")],
              parameter="Unused", default_value=1)
        b.wire("c1", "Output", "sink", "Roughness")
        graph = b.build()

        emitter = DataEmitter(graph, compactor)
        lines = emitter.render()
        idx = lines.index("// --- Dangling (unconnected) ---")

        assert lines[idx - 1] == ""
        # parameters come first inside the dangling section too
        param = trailing_comment(graph.nodes["p"], compactor, "Unused")
        assert lines[idx + 1] == f"float Param_Unused = 1.0; {param}"
        assert lines[idx + 2] == f"float {emitter.names['lonely']} = 0.25; {ann(graph, compactor, 'lonely')}"
        assert len(lines) == idx + 3

    def test_parameters_section(self, builder, compactor, ann):
        b = builder("M", category="material")
        b.add("p", NodeKind.PARAMETER, "MaterialExpressionScalarParameter", [data_out("Output")],
              parameter="Roughness", default_value=0.5)
        b.add("m", NodeKind.EXPRESSION, "MaterialExpressionMultiply",
              [data_in("A"), data_in("B"), data_out("Output")], ConstB=2)
        b.add("sink", NodeKind.SINK, "MaterialOutput", [data_in("Roughness")])
        b.wire("p", "Output", "m", "A")
        b.wire("m", "Output", "sink", "Roughness")
        graph = b.build()

        emitter = DataEmitter(graph, compactor)
        lines = emitter.render()
        a = lambda nid: ann(graph, compactor, nid)
        mul = emitter.names["m"]
        param = trailing_comment(graph.nodes["p"], compactor, "Roughness")

        assert lines == [
            "// --- Parameters ---",
            f"float Param_Roughness = 0.5; {param}",
            "",
            "// --- Expressions ---",
            f"auto {mul} = Param_Roughness * 2.0; {a('m')}",
            "",
            "// --- Material Outputs ---",
            f"Roughness = {mul}; {a('sink')}",
        ]
        assert param.endswith('"Roughness"')

    def test_outputs_follow_material_property_order(self, builder):
        b = builder("M", category="material")
        b.add("c1", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=1)
        b.add("c2", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=2)
        b.add("sink", NodeKind.SINK, "MaterialOutput",
              [data_in("Roughness"), data_in("Opacity"), data_in("BaseColor")])
        b.wire("c1", "Output", "sink", "Roughness")
        b.wire("c2", "Output", "sink", "BaseColor")

        sinks = DataEmitter(b.build()).sinks()
        # Opacity is unwired and therefore not a sink
        assert [s.slot for s in sinks] == ["BaseColor", "Roughness"]

    def test_secondary_outputs_are_swizzled(self, builder):
        b = builder("M", category="material")
        b.add("tex", NodeKind.EXPRESSION, "MaterialExpressionTextureSample",
              [data_in("UVs"), data_out("RGB"), data_out("R"), data_out("RGBA")], texture="T_Rock")
        b.add("sink", NodeKind.SINK, "MaterialOutput",
              [data_in("BaseColor"), data_in("Roughness"), data_in("Opacity")])
        b.wire("tex", "RGB", "sink", "BaseColor")
        b.wire("tex", "R", "sink", "Roughness")
        b.wire("tex", "RGBA", "sink", "Opacity")

        emitter = DataEmitter(b.build())
        lines = emitter.render()
        name = emitter.names["tex"]

        assert lines[1].startswith(f"float4 {name} = Texture2DSample(T_Rock, TexCoord[0]);")
        outputs = lines[lines.index("// --- Material Outputs ---") + 1:]
        assert outputs[0].startswith(f"BaseColor = {name};")
        assert outputs[1].startswith(f"Roughness = {name}.r;")
        assert outputs[2].startswith(f"Opacity = {name}.RGBA;")

    def test_vector_constant_and_unknown_expression(self, builder):
        b = builder("M", category="material")
        b.add("v", NodeKind.CONSTANT, "MaterialExpressionConstant3Vector", [data_out("Output")],
              value={"R": 1, "G": 0.5, "B": 0})
        b.add("x", NodeKind.EXPRESSION, "MaterialExpressionFresnel",
              [data_in("Normal"), data_out("Output")])
        b.add("sink", NodeKind.SINK, "MaterialOutput", [data_in("EmissiveColor")])
        b.wire("v", "Output", "x", "Normal")
        b.wire("x", "Output", "sink", "EmissiveColor")

        emitter = DataEmitter(b.build())
        lines = emitter.render()
        vec, fresnel = emitter.names["v"], emitter.names["x"]

        assert lines[1].startswith(f"float3 {vec} = float3(1.0, 0.5, 0.0);")
        assert lines[2].startswith(f"auto {fresnel} = Fresnel(Normal: {vec});")

    def test_cyclic_wiring_is_cut(self, builder, caplog):
        b = builder("M", category="material")
        b.add("a", NodeKind.EXPRESSION, "MaterialExpressionAbs", [data_in("Input"), data_out("Output")])
        b.add("b", NodeKind.EXPRESSION, "MaterialExpressionFloor", [data_in("Input"), data_out("Output")])
        b.add("sink", NodeKind.SINK, "MaterialOutput", [data_in("Metallic")])
        b.wire("a", "Output", "b", "Input")
        b.wire("b", "Output", "a", "Input")
        b.wire("a", "Output", "sink", "Metallic")

        emitter = DataEmitter(b.build())
        with caplog.at_level(logging.WARNING):
            lines = emitter.render()

        assert emitter.cycles
        assert any("cyclic" in r.getMessage() for r in caplog.records)
        assert sum(1 for line in lines if "= abs(" in line) == 1
        assert sum(1 for line in lines if "= floor(" in line) == 1

    def test_kind_table_is_exhaustive(self):
        emitter = DataEmitter(Graph("Empty"))
        for kind in NodeKind:
            assert kind in emitter._kinds


def _expression_graph(builder, type_name, inputs, feeds=(), kind=NodeKind.EXPRESSION, **attributes):
    """Node "x" with `inputs`; a constant per name in `feeds`; x drives BaseColor."""
    b = builder("M", category="material")
    for i, port in enumerate(feeds):
        b.add(f"c_{port}", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=i + 1)
        b.wire(f"c_{port}", "Output", "x", port)
    b.add("x", kind, type_name, [*(data_in(p) for p in inputs), data_out("Output")], **attributes)
    b.add("sink", NodeKind.SINK, "MaterialOutput", [data_in("BaseColor")])
    b.wire("x", "Output", "sink", "BaseColor")
    return b.build()


class TestExpressionOps:
    """One statement per expression class."""

    @pytest.fixture
    def render(self, compactor, ann):
        def run(graph):
            emitter = DataEmitter(graph, compactor)
            lines = emitter.render()
            return lines, emitter.names, lambda nid: ann(graph, compactor, nid)
        return run

    def test_lerp_falls_back_to_constant_attributes(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionLinearInterpolate", ["A", "B", "Alpha"],
                                  feeds=["A"], ConstAlpha=0.25)
        lines, names, a = render(graph)
        x, c = names["x"], names["c_A"]

        assert lines == [
            "// --- Expressions ---",
            f"float {c} = 1.0; {a('c_A')}",
            f"auto {x} = lerp({c}, 1.0, 0.25); {a('x')}",
            "",
            "// --- Material Outputs ---",
            f"BaseColor = {x}; {a('sink')}",
        ]

    def test_clamp(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionClamp", ["Input", "Min", "Max"],
                                  feeds=["Input"], MinDefault=0.2)
        lines, names, a = render(graph)
        assert f"auto {names['x']} = clamp({names['c_Input']}, 0.2, 1.0); {a('x')}" in lines

    def test_if_reuses_greater_when_equal_is_unwired(self, builder, render):
        ports = ["A", "B", "AGreaterThanB", "AEqualsB", "ALessThanB"]
        graph = _expression_graph(builder, "MaterialExpressionIf", ports,
                                  feeds=["A", "B", "AGreaterThanB", "ALessThanB"])
        lines, names, a = render(graph)
        ca, cb, gt, lt = (names[f"c_{p}"] for p in ("A", "B", "AGreaterThanB", "ALessThanB"))

        assert f"auto {names['x']} = ({ca} > {cb}) ? {gt} : ({ca} == {cb}) ? {gt} : {lt}; {a('x')}" in lines

    def test_component_mask(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionComponentMask", ["Input"],
                                  feeds=["Input"], R=True, B=True)
        lines, names, a = render(graph)
        assert f"auto {names['x']} = {names['c_Input']}.rb; {a('x')}" in lines

    def test_component_mask_without_channels_passes_input_through(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionComponentMask", ["Input"], feeds=["Input"])
        lines, names, a = render(graph)
        assert f"auto {names['x']} = {names['c_Input']}; {a('x')}" in lines

    def test_append(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionAppendVector", ["A", "B"], feeds=["A", "B"])
        lines, names, a = render(graph)
        assert f"auto {names['x']} = append({names['c_A']}, {names['c_B']}); {a('x')}" in lines

    def test_static_switch_expression(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionStaticSwitch", ["True", "False", "Value"],
                                  feeds=["True", "False"], DefaultValue=True)
        lines, names, a = render(graph)
        assert f"auto {names['x']} = true ? {names['c_True']} : {names['c_False']}; {a('x')}" in lines

    def test_static_switch_parameter_is_an_expression(self, builder, compactor, render):
        graph = _expression_graph(builder, "MaterialExpressionStaticSwitchParameter", ["True", "False"],
                                  feeds=["True", "False"], kind=NodeKind.PARAMETER,
                                  parameter="UseDetail", default_value=False)
        lines, names, _ = render(graph)
        annotation = trailing_comment(graph.nodes["x"], compactor, "UseDetail")

        assert "// --- Parameters ---" not in lines
        assert names["x"] == "Switch_UseDetail"
        assert f"auto Switch_UseDetail = false ? {names['c_True']} : {names['c_False']}; {annotation}" in lines

    def test_custom_node(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionCustom", ["UV", "Scale"], feeds=["UV"],
                                  description="Tiling", code="float2 t = UV * Scale;\nreturn t;")
        lines, names, a = render(graph)
        idx = lines.index(f"/* Custom: Tiling, inputs: UV: {names['c_UV']}, Scale: 0 */")

        assert lines[idx + 1] == f"auto {names['x']} = /* float2 t = UV * Scale; return t; */; {a('x')}"

    def test_material_function_call(self, builder, render):
        graph = _expression_graph(builder, "MaterialExpressionMaterialFunctionCall", ["Base (V3)", "Alpha (S)"],
                                  feeds=["Base (V3)"], function="MF_Blend")
        lines, names, a = render(graph)
        base = names["c_Base (V3)"]

        assert f'auto {names["x"]} = FunctionCall("MF_Blend", Base: {base}, Alpha: null); {a("x")}' in lines

    @pytest.mark.parametrize("type_name, declared, symbol", [
        ("MaterialExpressionTime", "float", "Time"),
        ("MaterialExpressionWorldPosition", "float3", "WorldPosition"),
        ("MaterialExpressionCameraPositionWS", "float3", "CameraPositionWS"),
    ])
    def test_engine_inputs(self, builder, render, type_name, declared, symbol):
        lines, names, a = render(_expression_graph(builder, type_name, []))
        assert lines[1] == f"{declared} {names['x']} = {symbol}; {a('x')}"

    def test_named_reroute_lines(self, builder, render):
        b = builder("M", category="material")
        b.add("c", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=0.5)
        b.add("decl", NodeKind.NAMED_REROUTE_DECLARATION, "MaterialExpressionNamedRerouteDeclaration",
              [data_in("Input"), data_out("Output")], name="Tint")
        b.add("use", NodeKind.NAMED_REROUTE_USAGE, "MaterialExpressionNamedRerouteUsage",
              [data_in(DECLARATION_PIN), data_out("Output")], name="Tint")
        b.add("sink", NodeKind.SINK, "MaterialOutput", [data_in("BaseColor")])
        b.wire("c", "Output", "decl", "Input")
        b.wire("decl", "Output", "use", DECLARATION_PIN)
        b.wire("use", "Output", "sink", "BaseColor")
        graph = b.build()

        lines, names, a = render(graph)
        c = names["c"]

        assert lines == [
            "// --- Expressions ---",
            f"float {c} = 0.5; {a('c')}",
            f'auto Reroute_Tint = {c}; {a("decl")} | decl: "Tint"',
            f'auto RerouteUsage_Tint = Reroute_Tint; {a("use")} | reroute: "Tint"',
            "",
            "// --- Material Outputs ---",
            f"BaseColor = RerouteUsage_Tint; {a('sink')}",
        ]
