from nodescribe.core.Types import NodeKind, PortFunction, ValueType
from nodescribe.synth.convergence import find_convergence
from nodescribe.synth.reachability import (
    collect_pure_dependencies,
    follow_knots,
    reachable_from,
    resolve_source,
    topo_sort,
    walk_order,
)

from conftest import data_in, data_out


class TestReachability:

    def test_control_closure_ignores_data_edges(self, builder):
        b = builder()
        b.event("E", "BeginPlay").call("A", "A").call("B", "B").getter("V", "bFlag")
        b.call("C", "C", inputs=[data_in("In")])
        b.flow("E", "A").flow("A", "B")
        b.wire("V", "bFlag", "C", "In")
        graph = b.build()

        assert reachable_from(graph, ["E"]) == {"E", "A", "B"}
        assert reachable_from(graph, ["C"], PortFunction.DATA, upstream=True) == {"C", "V"}
        assert reachable_from(graph, [None, "missing"]) == set()

    def test_walk_order_is_depth_first_by_port(self, builder):
        b = builder()
        b.event("E", "BeginPlay").branch("B").call("T", "T").call("F", "F").call("T2", "T2")
        b.flow("E", "B")
        b.flow("B", "T", src_port="then").flow("B", "F", src_port="else").flow("T", "T2")

        assert walk_order(b.build(), ["E"]) == ["E", "B", "T", "T2", "F"]

    def test_follow_knots(self, builder):
        b = builder()
        b.getter("V", "Speed")
        b.add("K1", NodeKind.KNOT, "K2Node_Knot", [data_in("InputPin"), data_out("OutputPin")])
        b.add("K2", NodeKind.KNOT, "K2Node_Knot", [data_in("InputPin"), data_out("OutputPin")])
        b.call("P", "Print", inputs=[data_in("Value")])
        b.wire("V", "Speed", "K1", "InputPin")
        b.wire("K1", "OutputPin", "K2", "InputPin")
        b.wire("K2", "OutputPin", "P", "Value")
        graph = b.build()

        assert follow_knots(graph, "K2", "OutputPin") == ("V", "Speed")
        src, port = resolve_source(graph, "P", "Value")
        assert (src.id, port) == ("V", "Speed")
        assert resolve_source(graph, "K1", "missing") is None


class TestPureDependencies:

    def _graph(self, builder):
        b = builder()
        b.getter("G", "Base").getter("H", "Bonus")
        b.add("M", NodeKind.EXPRESSION, "K2Node_Multiply",
              [data_in("A"), data_in("B"), data_out("Out")], title="Multiply")
        b.call("P", "Print", inputs=[data_in("Value"), data_in("Other")])
        b.wire("G", "Base", "M", "A").wire("H", "Bonus", "M", "B")
        b.wire("M", "Out", "P", "Value")
        return b.build()

    def test_dependencies_come_first(self, builder):
        graph = self._graph(builder)
        assert collect_pure_dependencies(graph, "P", set()) == ["G", "H", "M"]

    def test_already_emitted_are_skipped(self, builder):
        graph = self._graph(builder)
        assert collect_pure_dependencies(graph, "P", {"G"}) == ["H", "M"]
        assert collect_pure_dependencies(graph, "P", {"M"}) == []

    def test_impure_sources_are_not_collected(self, builder):
        b = builder()
        b.call("Get", "GetHealth", returns=ValueType.FLOAT)
        b.add("R", NodeKind.CALL_FUNCTION, "K2Node_CallFunction",
              [data_in("Value"), data_out("ReturnValue")], function="Pure")
        b.call("P", "Print", inputs=[data_in("Value"), data_in("Other")])
        b.wire("Get", "ReturnValue", "P", "Value")
        b.wire("R", "ReturnValue", "P", "Other")
        graph = b.build()

        # R has no control ports, so it is pure even though it is a call
        assert collect_pure_dependencies(graph, "P", set()) == ["R"]

    def test_topo_sort_respects_allowed(self, builder):
        graph = self._graph(builder)
        assert topo_sort(graph, ["M"], {"G", "H", "M"}) == ["G", "H", "M"]
        assert topo_sort(graph, ["M"], {"H", "M"}) == ["H", "M"]


class TestConvergence:

    def test_diamond(self, builder):
        b = builder()
        b.call("A", "A").call("B", "B").call("X", "X").call("Y", "Y")
        b.flow("A", "X").flow("B", "X").flow("X", "Y")
        assert find_convergence(b.build(), ["A", "B"]) == "X"

    def test_disjoint_branches(self, builder):
        b = builder()
        b.call("A", "A").call("B", "B").call("X", "X")
        b.flow("A", "X")
        assert find_convergence(b.build(), ["A", "B"]) is None

    def test_single_or_missing_branch(self, builder):
        b = builder()
        b.call("A", "A")
        graph = b.build()
        assert find_convergence(graph, ["A"]) is None
        assert find_convergence(graph, ["A", None]) is None

    def test_three_way_needs_all_branches(self, builder):
        b = builder()
        b.call("A", "A").call("B", "B").call("C", "C").call("AB", "AB").call("All", "All")
        b.flow("A", "AB").flow("B", "AB").flow("AB", "All").flow("C", "All")
        assert find_convergence(b.build(), ["A", "B", "C"]) == "All"
