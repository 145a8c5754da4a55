"""
nodescribe synthesis: Structured Control Emitter
==================================================
Renders an event/exec graph as nested C++-flavoured pseudocode.

    void ReceiveBeginPlay() // [AA] (0,0) "Event BeginPlay"
    {
        bool Local_IsReady = IsReady(); // [Ag] (200,80) "Is Ready"
        if (Local_IsReady) // [AQ] (400,0) "Branch"
        {
            Print(TEXT("yes") /*InString*/); // [Aw] (600,-40) "Print String"
        }
        else
        {
            Print(TEXT("no") /*InString*/); // [BA] (600,40) "Print String"
        }
        Finish(); // [BQ] (800,0) "Finish"
    }

    // --- Dangling Nodes ---
    // [Unconnected] Delay // [Bg] (0,400) "Delay"

Traversal
---------
Entry nodes (events, function entries, macro entries) are rendered in
ascending Y order.  From each entry, `emit_exec_from()` walks the control
chain one node at a time, dispatching on NodeKind:

  entry          signature, `{`, body, `}`
  branch-like    nested blocks per output, bounded by the convergence node,
                 then the walk continues at the convergence node
  loop macros    header + nested body, continue at the Completed output
  terminals      return / macro-exit lines, stop
  anything else  pure dependencies, one statement, first connected exec out

A RenderState carries the visited/emitted sets through the recursion so no
control node is entered twice.  Every non-comment node the walk never writes
is listed afterwards under `// --- Dangling Nodes ---`, sorted by (Y, X).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

from nodescribe.core.GraphPrimitives import Graph, Node, Port
from nodescribe.core.Types import ENTRY_KINDS, NodeKind, PortDirection, PortFunction, ValueType
from nodescribe.synth.convergence import find_convergence
from nodescribe.synth.formatting import UNSET, format_default_value, is_numeric, pin_type_to_string
from nodescribe.synth.identity import IdentityCompactor
from nodescribe.synth.naming import assign_names, class_label, sanitize_name
from nodescribe.synth.reachability import (
    collect_pure_dependencies,
    data_output_count,
    resolve_source,
    walk_order,
)
from nodescribe.synth.templates import CodeWriter, trailing_comment

logger = logging.getLogger(__name__)

SELF_PIN = "self"
RETURN_VALUE_PIN = "ReturnValue"

# exec output aliases across snapshot producers
THEN_PINS = ("then", "True", "true")
ELSE_PINS = ("else", "False", "false")
LOOP_BODY_PINS = ("Loop Body", "LoopBody", "loop_body")
COMPLETED_PINS = ("Completed", "completed")
CAST_SUCCESS_PINS = ("then", "CastSucceeded", "Success")
CAST_FAILED_PINS = ("CastFailed", "Failed")
DEFAULT_CASE_PINS = ("Default", "default")

FOR_EACH_MACROS = frozenset({"ForEachLoop", "ForEachLoopWithBreak"})
FOR_MACROS = frozenset({"ForLoop", "ForLoopWithBreak"})


@dataclass
class RenderState:
    """Accumulator threaded through one render pass."""
    visited: Set[str] = field(default_factory=set)       # control nodes entered
    emitted_pure: Set[str] = field(default_factory=set)  # pure nodes written
    cycles: Set[str] = field(default_factory=set)        # where cyclic data wiring was cut

    @property
    def emitted(self) -> Set[str]:
        return self.visited | self.emitted_pure


Handler = Callable[[Node, CodeWriter, RenderState, Optional[str]], Optional[str]]
Statement = Callable[[Node], List[str]]


class ControlEmitter:
    def __init__(self, graph: Graph, compactor: Optional[IdentityCompactor] = None):
        self.graph = graph
        self.compactor = compactor or IdentityCompactor()
        self.names: Dict[str, str] = {}

        # Exec dispatch.  Every NodeKind has an entry.
        self._handlers: Dict[NodeKind, Handler] = {kind: self._emit_plain for kind in NodeKind}
        self._handlers.update({
            NodeKind.EVENT: self._emit_entry,
            NodeKind.CUSTOM_EVENT: self._emit_entry,
            NodeKind.FUNCTION_ENTRY: self._emit_entry,
            NodeKind.MACRO_ENTRY: self._emit_entry,
            NodeKind.KNOT: self._emit_knot,
            NodeKind.BRANCH: self._emit_branch,
            NodeKind.SEQUENCE: self._emit_sequence,
            NodeKind.SWITCH: self._emit_switch,
            NodeKind.MACRO_INSTANCE: self._emit_macro_instance,
            NodeKind.DYNAMIC_CAST: self._emit_dynamic_cast,
            NodeKind.FUNCTION_RESULT: self._emit_function_result,
            NodeKind.MACRO_EXIT: self._emit_macro_exit,
        })

        # One-line statements, used for plain exec nodes and pure dependencies.
        self._statements: Dict[NodeKind, Statement] = {kind: self._stmt_fallback for kind in NodeKind}
        self._statements.update({
            NodeKind.CALL_FUNCTION: self._stmt_call_function,
            NodeKind.VARIABLE_GET: self._stmt_variable_get,
            NodeKind.VARIABLE_SET: self._stmt_variable_set,
            NodeKind.SELF: self._stmt_self,
            NodeKind.SPAWN_ACTOR: self._stmt_spawn_actor,
            NodeKind.MAKE_ARRAY: self._stmt_make_array,
            NodeKind.SELECT: self._stmt_select,
            NodeKind.DYNAMIC_CAST: self._stmt_pure_cast,
            NodeKind.KNOT: lambda node: [],
        })

    # ── Public API ────────────────────────────────────────────────────────

    def entry_nodes(self) -> List[Node]:
        entries = [n for n in self.graph.nodes.values() if n.kind in ENTRY_KINDS]
        return sorted(entries, key=lambda n: n.y)

    def discover(self) -> List[Node]:
        """Nodes in naming order: the control walk, then its pure dependencies."""
        walked = walk_order(self.graph, [n.id for n in self.entry_nodes()], PortFunction.CONTROL)
        seen = set(walked)
        order = list(walked)
        for nid in walked:
            for dep in collect_pure_dependencies(self.graph, nid, seen):
                seen.add(dep)
                order.append(dep)
        return [self.graph.nodes[nid] for nid in order]

    def render(self, state: Optional[RenderState] = None) -> List[str]:
        state = state if state is not None else RenderState()
        self.names = assign_names(self.discover(), self.compactor, self.graph.name)

        writer = CodeWriter()
        for entry in self.entry_nodes():
            self.emit_exec_from(entry.id, writer, state)

        dangling = self.dangling_nodes(state)
        if dangling:
            writer.writeln("// --- Dangling Nodes ---")
            for node in dangling:
                title = node.title or class_label(node)
                writer.writeln(f"// [Unconnected] {title}", self._annotation(node))

        if state.cycles:
            logger.warning("graph %s: cyclic data wiring cut at %s",
                           self.graph.name, sorted(state.cycles))
        return writer.lines()

    def dangling_nodes(self, state: RenderState) -> List[Node]:
        emitted = state.emitted
        dangling = [n for n in self.graph.nodes.values()
                    if n.id not in emitted and n.kind != NodeKind.COMMENT]
        return sorted(dangling, key=lambda n: (n.y, n.x))

    def emit_exec_from(
        self,
        start: Optional[str],
        writer: CodeWriter,
        state: RenderState,
        stop_before: Optional[str] = None,
    ) -> None:
        node_id = start
        while node_id is not None and node_id not in state.visited:
            if node_id == stop_before:
                break
            node = self.graph.get_node(node_id)
            if node is None:
                break
            state.visited.add(node_id)
            node_id = self._handlers[node.kind](node, writer, state, stop_before)

    # ── Helpers ───────────────────────────────────────────────────────────

    def _annotation(self, node: Node) -> str:
        return trailing_comment(node, self.compactor)

    def _name(self, node: Node) -> str:
        return self.names.get(node.id, "???")

    def _linked(self, node: Node, port_names: Sequence[str]) -> Optional[str]:
        for name in port_names:
            port = node.find_port(name, PortDirection.OUTPUT)
            if port is not None:
                target = self.graph.linked_node(node.id, port.name)
                if target is not None:
                    return target
        return None

    def _first_exec_target(self, node: Node) -> Optional[str]:
        for port in node.outputs(PortFunction.CONTROL):
            target = self.graph.linked_node(node.id, port.name)
            if target is not None:
                return target
        return None

    def _data_inputs(self, node: Node, skip_self: bool = True) -> List[Port]:
        return [p for p in node.inputs(PortFunction.DATA)
                if not (skip_self and p.name == SELF_PIN)]

    def _input_named(self, node: Node, *names: str) -> Optional[Port]:
        for name in names:
            port = node.find_port(name, PortDirection.INPUT)
            if port is not None:
                return port
        inputs = self._data_inputs(node)
        return inputs[0] if inputs else None

    def _type_of_first_output(self, node: Node) -> Optional[str]:
        outputs = node.outputs(PortFunction.DATA)
        if not outputs:
            return None
        return pin_type_to_string(outputs[0].pin_type) or "auto"

    def input_ref(self, node: Node, port: Optional[Port]) -> str:
        """Expression text for one input port of `node`."""
        if port is None or port.broken:
            return "???"

        if self.graph.get_incoming(node.id, port.name):
            source = resolve_source(self.graph, node.id, port.name)
            name = self.names.get(source[0].id) if source else None
            if name is None:
                return "???"
            src, src_port = source
            if src.kind in ENTRY_KINDS:
                # entry outputs are the parameters declared in the signature
                return sanitize_name(src_port)
            if src_port != RETURN_VALUE_PIN:
                out = src.find_port(src_port, PortDirection.OUTPUT)
                if out is not None and not out.is_control and data_output_count(src) > 1:
                    return f"{name}.{sanitize_name(src_port)}"
            return name

        raw = port.default_value or port.autogenerated_default
        formatted = format_default_value(port.pin_type, raw)
        label = port.name
        if formatted != UNSET and label and label != formatted and not is_numeric(label):
            formatted = f"{formatted} /*{label}*/"
        return formatted

    def _args(self, node: Node) -> str:
        return ", ".join(self.input_ref(node, p) for p in self._data_inputs(node))

    def emit_pure_deps(self, node: Node, writer: CodeWriter, state: RenderState) -> None:
        deps = collect_pure_dependencies(self.graph, node.id, state.emitted_pure, state.cycles)
        for dep_id in deps:
            state.emitted_pure.add(dep_id)
            dep = self.graph.nodes[dep_id]
            for line in self._statements[dep.kind](dep):
                writer.writeln(line)

    def _block(self, writer: CodeWriter, state: RenderState, start: Optional[str],
               stop_before: Optional[str]) -> None:
        writer.open()
        self.emit_exec_from(start, writer, state, stop_before)
        writer.close()

    # ── Exec handlers ─────────────────────────────────────────────────────

    def _signature_params(self, node: Node) -> str:
        params = []
        for port in node.outputs(PortFunction.DATA):
            if port.pin_type.category == ValueType.DELEGATE:
                continue
            params.append(f"{pin_type_to_string(port.pin_type)} {sanitize_name(port.name)}")
        return ", ".join(params)

    def _emit_entry(self, node, writer, state, stop_before):
        params = self._signature_params(node)
        if node.kind == NodeKind.FUNCTION_ENTRY:
            signature = f"void {sanitize_name(node.attr('function') or self.graph.name)}({params})"
        elif node.kind == NodeKind.MACRO_ENTRY:
            signature = f"/* Macro */ {sanitize_name(self.graph.name)}({params})"
        elif node.kind == NodeKind.CUSTOM_EVENT:
            signature = f"void {sanitize_name(node.attr('custom_name') or node.title)}({params})"
        else:
            signature = f"void {sanitize_name(node.title or node.attr('event', ''))}({params})"

        writer.writeln(signature, self._annotation(node))
        self._block(writer, state, self._first_exec_target(node), None)
        writer.blank()
        return None

    def _emit_knot(self, node, writer, state, stop_before):
        return self._first_exec_target(node)

    def _emit_plain(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        for line in self._statements[node.kind](node):
            writer.writeln(line)
        return self._first_exec_target(node)

    def _emit_branch(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        cond = self.input_ref(node, self._input_named(node, "Condition"))
        then_start = self._linked(node, THEN_PINS)
        else_start = self._linked(node, ELSE_PINS)
        convergence = find_convergence(self.graph, [then_start, else_start])

        writer.writeln(f"if ({cond})", self._annotation(node))
        self._block(writer, state, then_start, convergence)
        if else_start is not None:
            writer.writeln("else")
            self._block(writer, state, else_start, convergence)
        return convergence

    def _emit_sequence(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        outs = [(i, self.graph.linked_node(node.id, p.name))
                for i, p in enumerate(node.outputs(PortFunction.CONTROL))]
        starts = [target for _, target in outs if target is not None]
        convergence = find_convergence(self.graph, starts)

        writer.writeln("// --- Sequence ---", self._annotation(node))
        for i, target in outs:
            if target is None:
                continue
            writer.writeln(f"// [Seq {i}]")
            self._block(writer, state, target, convergence)
        return convergence

    def _emit_switch(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        selection = self.input_ref(node, self._input_named(node, "Selection"))
        quote = bool(node.attr("string_switch")) or class_label(node) == "SwitchString"

        cases = []
        default_target = None
        for port in node.outputs(PortFunction.CONTROL):
            target = self.graph.linked_node(node.id, port.name)
            if port.name in DEFAULT_CASE_PINS:
                default_target = target
                continue
            label = port.case_label or port.name
            cases.append((f'TEXT("{label}")' if quote else label, target))

        starts = [t for _, t in cases if t is not None]
        if default_target is not None:
            starts.append(default_target)
        convergence = find_convergence(self.graph, starts)

        writer.writeln(f"switch ({selection})", self._annotation(node))
        writer.writeln("{")
        for label, target in cases:
            writer.writeln(f"case {label}:")
            self._case_block(writer, state, target, convergence)
        if default_target is not None:
            writer.writeln("default:")
            self._case_block(writer, state, default_target, convergence)
        writer.writeln("}")
        return convergence

    def _case_block(self, writer, state, target, convergence):
        writer.open()
        self.emit_exec_from(target, writer, state, convergence)
        writer.writeln("break;")
        writer.close()

    def _emit_macro_instance(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        macro = node.attr("macro") or node.title or "UnknownMacro"
        annotation = self._annotation(node)
        completed = self._linked(node, COMPLETED_PINS)

        def ref(*names):
            for name in names:
                port = node.find_port(name, PortDirection.INPUT)
                if port is not None:
                    return self.input_ref(node, port)
            return "???"

        if macro in FOR_EACH_MACROS or macro in FOR_MACROS or macro == "WhileLoop":
            if macro in FOR_EACH_MACROS:
                header = f"for (auto& Element : {ref('Array')})"
            elif macro in FOR_MACROS:
                first, last = ref("FirstIndex"), ref("LastIndex")
                header = f"for (int32 Index = {first}; Index <= {last}; ++Index)"
            else:
                header = f"while ({ref('Condition')})"
            writer.writeln(header, annotation)
            self._block(writer, state, self._linked(node, LOOP_BODY_PINS), None)
            return completed

        if macro == "IsValid":
            valid = self._linked(node, ("Is Valid",))
            not_valid = self._linked(node, ("Is Not Valid",))
            convergence = find_convergence(self.graph, [valid, not_valid])
            writer.writeln(f"if (IsValid({ref('InputObject')}))", annotation)
            self._block(writer, state, valid, convergence)
            if not_valid is not None:
                writer.writeln("else")
                self._block(writer, state, not_valid, convergence)
            return convergence

        if macro == "FlipFlop":
            a_start = self._linked(node, ("A",))
            b_start = self._linked(node, ("B",))
            convergence = find_convergence(self.graph, [a_start, b_start])
            writer.writeln("// FlipFlop", annotation)
            writer.writeln("if (/*FlipFlop A*/)")
            self._block(writer, state, a_start, convergence)
            writer.writeln("else // FlipFlop B")
            self._block(writer, state, b_start, convergence)
            return convergence

        if macro == "Gate":
            writer.writeln("// Gate", annotation)
            return self._linked(node, ("Exit",))

        if macro == "DoOnce":
            writer.writeln("// DoOnce", annotation)
            return completed

        # generic macro call
        args = ", ".join(self.input_ref(node, p) for p in self._data_inputs(node, skip_self=False))
        exec_outs = [(p.name, self.graph.linked_node(node.id, p.name))
                     for p in node.outputs(PortFunction.CONTROL)
                     if p.name not in COMPLETED_PINS]
        writer.writeln(f"{sanitize_name(macro)}({args});", annotation)

        if len(exec_outs) == 1 and exec_outs[0][1] is not None:
            self.emit_exec_from(exec_outs[0][1], writer, state, stop_before)
        elif len(exec_outs) > 1:
            convergence = find_convergence(self.graph, [t for _, t in exec_outs])
            for pin, target in exec_outs:
                writer.writeln(f"// [{pin}]")
                self._block(writer, state, target, convergence)
            return convergence
        return completed

    def _emit_dynamic_cast(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        writer.writeln(self._cast_line(node), self._annotation(node))

        success = self._linked(node, CAST_SUCCESS_PINS)
        failed = self._linked(node, CAST_FAILED_PINS)
        convergence = find_convergence(self.graph, [success, failed])

        writer.writeln(f"if ({self._name(node)})")
        self._block(writer, state, success, convergence)
        if failed is not None:
            writer.writeln("else")
            self._block(writer, state, failed, convergence)
        return convergence

    def _emit_function_result(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        annotation = self._annotation(node)
        returns = self._data_inputs(node, skip_self=False)
        if len(returns) == 1:
            writer.writeln(f"return {self.input_ref(node, returns[0])};", annotation)
            return None
        for port in returns:
            writer.writeln(f"{sanitize_name(port.name)} = {self.input_ref(node, port)};")
        writer.writeln("return;", annotation)
        return None

    def _emit_macro_exit(self, node, writer, state, stop_before):
        self.emit_pure_deps(node, writer, state)
        for port in self._data_inputs(node, skip_self=False):
            writer.writeln(f"{sanitize_name(port.name)} = {self.input_ref(node, port)}; // macro output")
        writer.writeln("// macro exit", self._annotation(node))
        return None

    # ── Statements ────────────────────────────────────────────────────────

    def _with_annotation(self, node: Node, line: str) -> str:
        return f"{line} {self._annotation(node)}"

    def _stmt_call_function(self, node: Node) -> List[str]:
        func = node.attr("function") or sanitize_name(node.title)
        target = ""
        self_port = node.find_port(SELF_PIN, PortDirection.INPUT)
        if self_port is not None and self.graph.get_incoming(node.id, SELF_PIN):
            target = self.input_ref(node, self_port) + "->"
        call = f"{target}{func}({self._args(node)});"
        type_str = self._type_of_first_output(node)
        if type_str is not None:
            call = f"{type_str} {self._name(node)} = {call}"
        return [self._with_annotation(node, call)]

    def _stmt_variable_get(self, node: Node) -> List[str]:
        var = node.attr("variable") or sanitize_name(node.title)
        type_str = self._type_of_first_output(node) or "auto"
        return [self._with_annotation(node, f"{type_str} {self._name(node)} = {var};")]

    def _stmt_variable_set(self, node: Node) -> List[str]:
        var = node.attr("variable") or sanitize_name(node.title)
        inputs = self._data_inputs(node)
        value = self.input_ref(node, inputs[0]) if inputs else UNSET
        return [self._with_annotation(node, f"{var} = {value};")]

    def _stmt_self(self, node: Node) -> List[str]:
        return [self._with_annotation(node, f"auto {self._name(node)} = this;")]

    def _stmt_spawn_actor(self, node: Node) -> List[str]:
        name = self._name(node)
        cls = node.attr("class", "AActor")
        transform = self.input_ref(node, node.find_port("SpawnTransform", PortDirection.INPUT))
        lines = [self._with_annotation(
            node, f"{cls}* {name} = GetWorld()->SpawnActor<{cls}>({transform});")]
        for port in self._data_inputs(node):
            if port.spawn_var:
                lines.append(f"{name}->{sanitize_name(port.name)} = {self.input_ref(node, port)};")
        return lines

    def _stmt_make_array(self, node: Node) -> List[str]:
        elements = ", ".join(self.input_ref(node, p) for p in self._data_inputs(node))
        outputs = node.outputs(PortFunction.DATA)
        elem = "auto"
        if outputs:
            elem = pin_type_to_string(outputs[0].pin_type.element()) or "auto"
        return [self._with_annotation(node, f"TArray<{elem}> {self._name(node)} = {{ {elements} }};")]

    def _stmt_select(self, node: Node) -> List[str]:
        index_pin = node.attr("index_pin", "Index")
        index = self.input_ref(node, node.find_port(index_pin, PortDirection.INPUT))
        options = [p for p in self._data_inputs(node) if p.name != index_pin]
        type_str = self._type_of_first_output(node) or "auto"
        name = self._name(node)
        if len(options) == 2:
            a, b = (self.input_ref(node, p) for p in options)
            line = f"{type_str} {name} = ({index}) ? {a} : {b};"
        else:
            listed = ", ".join(self.input_ref(node, p) for p in options)
            line = f"{type_str} {name} = Select({index}, {listed});"
        return [self._with_annotation(node, line)]

    def _cast_line(self, node: Node) -> str:
        target = node.attr("target_type", "Unknown")
        obj = self.input_ref(node, self._input_named(node, "Object"))
        return f"{target}* {self._name(node)} = Cast<{target}>({obj});"

    def _stmt_pure_cast(self, node: Node) -> List[str]:
        return [self._with_annotation(node, self._cast_line(node))]

    def _stmt_fallback(self, node: Node) -> List[str]:
        title = sanitize_name(node.title or class_label(node))
        call = f"/* {node.type_name} */ {title}({self._args(node)});"
        type_str = self._type_of_first_output(node)
        if type_str is not None:
            call = f"{type_str} {self._name(node)} = {call}"
        return [self._with_annotation(node, call)]
