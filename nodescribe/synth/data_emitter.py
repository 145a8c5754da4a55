"""
nodescribe synthesis: Topological Data Emitter
================================================
Renders a pure dataflow graph (material-style expressions feeding named
output slots) as a flat list of HLSL-flavoured assignments.

Output structure
----------------
    // --- Parameters ---
    float Param_Roughness = 0.5; // [AA] (-400,0) "Roughness"

    // --- Expressions ---
    auto Multiply_AQ = Param_Roughness * 2.0; // [AQ] (-200,0)

    // --- Material Outputs ---
    Roughness = Multiply_AQ; // [Ag] (0,0) "Material"

    // --- Dangling (unconnected) ---
    float Constant_Aw = 3.0; // [Aw] (-400,300)

Algorithm
---------
  1. sinks    connected input ports of SINK nodes, in material property order
  2. reach    upstream data closure of the sink sources
  3. order    post-order DFS, so every source precedes its consumers
  4. split    parameters first, then ordinary expressions
  5. outputs  one `Slot = Var;` line per sink
  6. dangling everything outside the closure, sorted the same way

Names are assigned once over main then dangling nodes, so dangling
expressions that read connected ones reuse the connected names.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from nodescribe.core.GraphPrimitives import Graph, Node, Port
from nodescribe.core.Types import NodeKind, PortFunction
from nodescribe.synth.formatting import fmt_float
from nodescribe.synth.identity import IdentityCompactor
from nodescribe.synth.naming import assign_names, class_label, is_static_switch_parameter
from nodescribe.synth.reachability import reachable_from, topo_sort
from nodescribe.synth.templates import CodeWriter, trailing_comment

logger = logging.getLogger(__name__)


KNOWN_MATERIAL_PROPERTIES: Tuple[str, ...] = (
    "BaseColor",
    "Metallic",
    "Specular",
    "Roughness",
    "EmissiveColor",
    "Normal",
    "Opacity",
    "OpacityMask",
    "WorldPositionOffset",
    "AmbientOcclusion",
    "Refraction",
    "Anisotropy",
    "Tangent",
    "Displacement",
    "SubsurfaceColor",
    "CustomData0",
    "CustomData1",
    "PixelDepthOffset",
    "ShadingModel",
    "SurfaceThickness",
    "FrontMaterial",
    "MaterialAttributes",
    "CustomizedUV0",
    "CustomizedUV1",
    "CustomizedUV2",
    "CustomizedUV3",
    "CustomizedUV4",
    "CustomizedUV5",
    "CustomizedUV6",
    "CustomizedUV7",
)

_PROPERTY_RANK = {name.lower(): i for i, name in enumerate(KNOWN_MATERIAL_PROPERTIES)}

_BINARY_OPS = {"Add": "+", "Subtract": "-", "Multiply": "*", "Divide": "/"}

_UNARY_FUNCS = {
    "Abs": "abs",
    "Saturate": "saturate",
    "Floor": "floor",
    "Ceil": "ceil",
    "Frac": "frac",
    "Round": "round",
    "SquareRoot": "sqrt",
    "Normalize": "normalize",
    "Sign": "sign",
    "Sine": "sin",
    "Cosine": "cos",
}

_ENGINE_INPUTS = {
    "Time": ("float", "Time"),
    "WorldPosition": ("float3", "WorldPosition"),
    "VertexNormalWS": ("float3", "VertexNormalWS"),
    "PixelNormalWS": ("float3", "PixelNormalWS"),
    "CameraPositionWS": ("float3", "CameraPositionWS"),
}


class Sink:
    __slots__ = ("slot", "node", "source_id", "source_port")

    def __init__(self, slot: str, node: Node, source_id: str, source_port: str):
        self.slot = slot
        self.node = node
        self.source_id = source_id
        self.source_port = source_port


def is_parameter_like(node: Node) -> bool:
    return node.kind == NodeKind.PARAMETER and not is_static_switch_parameter(node)


def _components(node: Node, count: int, value: Any = None) -> List[Any]:
    """Constant/vector values from `value` (scalar, list or RGBA dict) or R/G/B/A."""
    if value is None:
        value = node.attr("value", node.attr("Constant"))
    if isinstance(value, dict):
        value = [value.get(k, value.get(k.lower(), 0)) for k in "RGBA"[:count]]
    elif value is None:
        value = [node.attr(k, 0) for k in "RGBA"[:count]]
    elif not isinstance(value, (list, tuple)):
        value = [value]
    value = list(value)[:count]
    return value + [0] * (count - len(value))


class DataEmitter:
    def __init__(self, graph: Graph, compactor: Optional[IdentityCompactor] = None):
        self.graph = graph
        self.compactor = compactor or IdentityCompactor()
        self.names: Dict[str, str] = {}
        self.cycles: Set[str] = set()

        # Kind dispatch.  Every NodeKind has an entry.
        self._kinds: Dict[NodeKind, Callable[[Node], List[str]]] = {
            kind: self._emit_fallback for kind in NodeKind
        }
        self._kinds.update({
            NodeKind.CONSTANT: self._emit_constant,
            NodeKind.PARAMETER: self._emit_parameter,
            NodeKind.EXPRESSION: self._emit_expression,
            NodeKind.KNOT: self._emit_reroute,
            NodeKind.NAMED_REROUTE_DECLARATION: self._emit_named_reroute_declaration,
            NodeKind.NAMED_REROUTE_USAGE: self._emit_named_reroute_usage,
        })

        # Expression ops keyed by class name without its prefix.
        self._ops: Dict[str, Callable[[Node], List[str]]] = {
            "TextureSample": self._op_texture_sample,
            "TextureSampleParameter2D": self._op_texture_sample,
            "TextureCoordinate": self._op_texture_coordinate,
            "TextureObject": self._op_texture_object,
            "DotProduct": self._op_dot,
            "CrossProduct": self._op_cross,
            "Power": self._op_power,
            "LinearInterpolate": self._op_lerp,
            "Clamp": self._op_clamp,
            "If": self._op_if,
            "OneMinus": self._op_one_minus,
            "ComponentMask": self._op_component_mask,
            "AppendVector": self._op_append,
            "StaticSwitch": self._op_static_switch,
            "Custom": self._op_custom,
            "MaterialFunctionCall": self._op_function_call,
            "Reroute": self._emit_reroute,
        }
        for op in _BINARY_OPS:
            self._ops[op] = self._op_binary
        for op in _UNARY_FUNCS:
            self._ops[op] = self._op_unary
        for op in _ENGINE_INPUTS:
            self._ops[op] = self._op_engine_input

    # ── Public API ────────────────────────────────────────────────────────

    def sinks(self) -> List[Sink]:
        found: List[Tuple[Tuple[int, int, int], Sink]] = []
        sink_nodes = self.graph.nodes_of_kind(NodeKind.SINK)
        for node_rank, node in enumerate(sink_nodes):
            for port_rank, port in enumerate(node.inputs(PortFunction.DATA)):
                incoming = self.graph.get_incoming(node.id, port.name)
                if not incoming:
                    continue
                rank = _PROPERTY_RANK.get(port.name.lower(), len(_PROPERTY_RANK))
                sink = Sink(port.name, node, incoming[0].from_node_id, incoming[0].from_port_name)
                found.append(((rank, node_rank, port_rank), sink))
        found.sort(key=lambda item: item[0])
        return [sink for _, sink in found]

    def partition(self) -> Tuple[List[str], List[str]]:
        """(main, dangling) node ids, each topologically ordered."""
        sinks = self.sinks()
        roots: List[str] = []
        for sink in sinks:
            if sink.source_id not in roots:
                roots.append(sink.source_id)

        excluded = {n.id for n in self.graph.nodes.values()
                    if n.kind in (NodeKind.SINK, NodeKind.COMMENT)}
        reachable = reachable_from(self.graph, roots, PortFunction.DATA, upstream=True) - excluded
        main = topo_sort(self.graph, roots, reachable, self.cycles)

        leftover = [nid for nid in self.graph.nodes if nid not in reachable and nid not in excluded]
        dangling = topo_sort(self.graph, leftover, set(leftover), self.cycles)
        return main, dangling

    def render(self) -> List[str]:
        main, dangling = self.partition()
        nodes = [self.graph.nodes[nid] for nid in main + dangling]
        self.names = assign_names(nodes, self.compactor, self.graph.name)

        writer = CodeWriter()
        if not main:
            writer.comment("(no expressions connected)")

        main_nodes = [self.graph.nodes[nid] for nid in main]
        params = [n for n in main_nodes if is_parameter_like(n)]
        exprs = [n for n in main_nodes if not is_parameter_like(n)]

        if params:
            writer.comment("--- Parameters ---")
            self._emit_all(writer, params)
            writer.blank()
        if exprs:
            writer.comment("--- Expressions ---")
            self._emit_all(writer, exprs)
            writer.blank()

        sinks = self.sinks()
        if sinks:
            writer.comment("--- Material Outputs ---")
            for sink in sinks:
                ref = self._source_ref(sink.source_id, sink.source_port) or "???"
                writer.writeln(f"{sink.slot} = {ref};", trailing_comment(sink.node, self.compactor))

        if dangling:
            if writer.lines():
                writer.blank()
            writer.comment("--- Dangling (unconnected) ---")
            dangling_nodes = [self.graph.nodes[nid] for nid in dangling]
            self._emit_all(writer, [n for n in dangling_nodes if is_parameter_like(n)])
            self._emit_all(writer, [n for n in dangling_nodes if not is_parameter_like(n)])

        if self.cycles:
            logger.warning("graph %s: cyclic data wiring cut at %s",
                           self.graph.name, sorted(self.cycles))
        return writer.lines()

    def _emit_all(self, writer: CodeWriter, nodes: List[Node]) -> None:
        for node in nodes:
            for line in self._kinds[node.kind](node):
                writer.writeln(line)

    # ── Input references ──────────────────────────────────────────────────

    def _annotation(self, node: Node) -> str:
        title = node.title
        if node.kind == NodeKind.PARAMETER:
            title = node.attr("parameter") or title
        return trailing_comment(node, self.compactor, title)

    def _stmt(self, node: Node, text: str) -> str:
        return f"{text} {self._annotation(node)}"

    def _name(self, node: Node) -> str:
        return self.names.get(node.id, "???")

    def _source_ref(self, src_id: str, src_port: str) -> Optional[str]:
        src = self.graph.get_node(src_id)
        name = self.names.get(src_id)
        if src is None or name is None:
            return None
        outputs = src.outputs(PortFunction.DATA)
        index = next((i for i, p in enumerate(outputs) if p.name == src_port), 0)
        if index > 0:
            if len(src_port) == 1:
                return f"{name}.{src_port.lower()}"
            if src_port:
                return f"{name}.{src_port}"
        return name

    def _input_port(self, node: Node, index: int) -> Optional[Port]:
        inputs = node.inputs(PortFunction.DATA)
        return inputs[index] if index < len(inputs) else None

    def input_ref(self, node: Node, index: int, default: str = "0") -> str:
        port = self._input_port(node, index)
        if port is None:
            return default
        if port.broken:
            return "???"
        incoming = self.graph.get_incoming(node.id, port.name)
        if not incoming:
            return port.default_value if port.default_value else default
        ref = self._source_ref(incoming[0].from_node_id, incoming[0].from_port_name)
        return default if ref is None else ref

    def input_list(self, node: Node, default: str = "null") -> str:
        parts = []
        for i, port in enumerate(node.inputs(PortFunction.DATA)):
            label = port.name.split("(")[0].strip()
            ref = self.input_ref(node, i, default)
            parts.append(f"{label}: {ref}" if label else ref)
        return ", ".join(parts)

    # ── Kinds ─────────────────────────────────────────────────────────────

    def _emit_constant(self, node: Node) -> List[str]:
        label = class_label(node)
        name = self._name(node)
        if label == "Constant2Vector":
            r, g = (fmt_float(v) for v in _components(node, 2))
            return [self._stmt(node, f"float2 {name} = float2({r}, {g});")]
        if label == "Constant3Vector":
            r, g, b = (fmt_float(v) for v in _components(node, 3))
            return [self._stmt(node, f"float3 {name} = float3({r}, {g}, {b});")]
        if label == "Constant4Vector":
            r, g, b, a = (fmt_float(v) for v in _components(node, 4))
            return [self._stmt(node, f"float4 {name} = float4({r}, {g}, {b}, {a});")]
        if label == "Constant":
            return [self._stmt(node, f"float {name} = {fmt_float(_components(node, 1)[0])};")]
        return self._emit_expression(node)

    def _emit_parameter(self, node: Node) -> List[str]:
        label = class_label(node)
        name = self._name(node)
        default = node.attr("default_value", node.attr("DefaultValue"))
        if is_static_switch_parameter(node):
            flag = "true" if default else "false"
            on, off = self.input_ref(node, 0), self.input_ref(node, 1)
            return [self._stmt(node, f"auto {name} = {flag} ? {on} : {off};")]
        if label == "StaticBoolParameter":
            return [self._stmt(node, f"bool {name} = {'true' if default else 'false'};")]
        if label == "VectorParameter":
            if isinstance(default, (list, tuple, dict)):
                values = _components(node, 4, default)
            else:
                values = [0, 0, 0, 0]
            r, g, b, a = (fmt_float(v) for v in values)
            return [self._stmt(node, f"float4 {name} = float4({r}, {g}, {b}, {a});")]
        if label.startswith("TextureSampleParameter"):
            return self._op_texture_sample(node)
        return [self._stmt(node, f"float {name} = {fmt_float(default or 0)};")]

    def _emit_expression(self, node: Node) -> List[str]:
        op = self._ops.get(class_label(node))
        if op is None:
            return self._emit_fallback(node)
        return op(node)

    def _emit_reroute(self, node: Node) -> List[str]:
        return [self._stmt(node, f"auto {self._name(node)} = {self.input_ref(node, 0, 'null')};")]

    def _emit_named_reroute_declaration(self, node: Node) -> List[str]:
        decl = node.attr("name") or node.title
        value = self.input_ref(node, 0)
        return [f'{self._stmt(node, f"auto {self._name(node)} = {value};")} | decl: "{decl}"']

    def _emit_named_reroute_usage(self, node: Node) -> List[str]:
        ref = self.input_ref(node, 0, "???")
        reroute = node.attr("name") or ""
        return [f'{self._stmt(node, f"auto {self._name(node)} = {ref};")} | reroute: "{reroute}"']

    def _emit_fallback(self, node: Node) -> List[str]:
        return [self._stmt(node, f"auto {self._name(node)} = {class_label(node)}({self.input_list(node)});")]

    # ── Expression ops ────────────────────────────────────────────────────

    def _op_texture_sample(self, node: Node) -> List[str]:
        texture = node.attr("texture", "None")
        uv = self.input_ref(node, 0, "TexCoord[0]")
        return [self._stmt(node, f"float4 {self._name(node)} = Texture2DSample({texture}, {uv});")]

    def _op_texture_coordinate(self, node: Node) -> List[str]:
        index = node.attr("coordinate_index", node.attr("CoordinateIndex", 0))
        return [self._stmt(node, f"float2 {self._name(node)} = TexCoord[{index}];")]

    def _op_texture_object(self, node: Node) -> List[str]:
        texture = node.attr("texture", "None")
        return [self._stmt(node, f"Texture2D {self._name(node)} = Texture2D'{texture}';")]

    def _op_binary(self, node: Node) -> List[str]:
        op = _BINARY_OPS[class_label(node)]
        a = self.input_ref(node, 0, fmt_float(node.attr("ConstA", 0)))
        b = self.input_ref(node, 1, fmt_float(node.attr("ConstB", 0)))
        return [self._stmt(node, f"auto {self._name(node)} = {a} {op} {b};")]

    def _op_dot(self, node: Node) -> List[str]:
        a, b = self.input_ref(node, 0), self.input_ref(node, 1)
        return [self._stmt(node, f"float {self._name(node)} = dot({a}, {b});")]

    def _op_cross(self, node: Node) -> List[str]:
        a, b = self.input_ref(node, 0), self.input_ref(node, 1)
        return [self._stmt(node, f"float3 {self._name(node)} = cross({a}, {b});")]

    def _op_power(self, node: Node) -> List[str]:
        base = self.input_ref(node, 0, "0")
        exp = self.input_ref(node, 1, fmt_float(node.attr("ConstExponent", 2)))
        return [self._stmt(node, f"auto {self._name(node)} = pow({base}, {exp});")]

    def _op_lerp(self, node: Node) -> List[str]:
        a = self.input_ref(node, 0, fmt_float(node.attr("ConstA", 0)))
        b = self.input_ref(node, 1, fmt_float(node.attr("ConstB", 1)))
        alpha = self.input_ref(node, 2, fmt_float(node.attr("ConstAlpha", 0.5)))
        return [self._stmt(node, f"auto {self._name(node)} = lerp({a}, {b}, {alpha});")]

    def _op_clamp(self, node: Node) -> List[str]:
        value = self.input_ref(node, 0, "0")
        low = self.input_ref(node, 1, fmt_float(node.attr("MinDefault", 0)))
        high = self.input_ref(node, 2, fmt_float(node.attr("MaxDefault", 1)))
        return [self._stmt(node, f"auto {self._name(node)} = clamp({value}, {low}, {high});")]

    def _op_if(self, node: Node) -> List[str]:
        a, b = self.input_ref(node, 0), self.input_ref(node, 1)
        greater = self.input_ref(node, 2)
        equal = self.input_ref(node, 3, "") or greater
        less = self.input_ref(node, 4)
        text = f"auto {self._name(node)} = ({a} > {b}) ? {greater} : ({a} == {b}) ? {equal} : {less};"
        return [self._stmt(node, text)]

    def _op_one_minus(self, node: Node) -> List[str]:
        return [self._stmt(node, f"auto {self._name(node)} = 1.0 - {self.input_ref(node, 0)};")]

    def _op_unary(self, node: Node) -> List[str]:
        func = _UNARY_FUNCS[class_label(node)]
        return [self._stmt(node, f"auto {self._name(node)} = {func}({self.input_ref(node, 0)});")]

    def _op_component_mask(self, node: Node) -> List[str]:
        mask = "".join(c.lower() for c in "RGBA" if node.attr(c))
        source = self.input_ref(node, 0)
        if mask:
            source = f"{source}.{mask}"
        return [self._stmt(node, f"auto {self._name(node)} = {source};")]

    def _op_append(self, node: Node) -> List[str]:
        a, b = self.input_ref(node, 0), self.input_ref(node, 1)
        return [self._stmt(node, f"auto {self._name(node)} = append({a}, {b});")]

    def _op_static_switch(self, node: Node) -> List[str]:
        on, off = self.input_ref(node, 0), self.input_ref(node, 1)
        flag = "true" if node.attr("DefaultValue", node.attr("default_value")) else "false"
        value = self.input_ref(node, 2, flag)
        return [self._stmt(node, f"auto {self._name(node)} = {value} ? {on} : {off};")]

    def _op_engine_input(self, node: Node) -> List[str]:
        type_str, symbol = _ENGINE_INPUTS[class_label(node)]
        return [self._stmt(node, f"{type_str} {self._name(node)} = {symbol};")]

    def _op_custom(self, node: Node) -> List[str]:
        description = node.attr("description") or "Custom"
        code = str(node.attr("code", "")).replace("\n", " ")[:120]
        inputs = self.input_list(node, "0")
        return [
            f"/* Custom: {description}, inputs: {inputs} */",
            self._stmt(node, f"auto {self._name(node)} = /* {code} */;"),
        ]

    def _op_function_call(self, node: Node) -> List[str]:
        function = node.attr("function", "Unknown")
        inputs = self.input_list(node)
        args = f'"{function}", {inputs}' if inputs else f'"{function}"'
        return [self._stmt(node, f"auto {self._name(node)} = FunctionCall({args});")]
