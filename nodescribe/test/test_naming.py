import pytest

from nodescribe.core.GraphPrimitives import Node
from nodescribe.core.Types import NodeKind
from nodescribe.synth.identity import IdentityCompactor
from nodescribe.synth.naming import _BASE_NAMES, assign_names, base_name, class_label, sanitize_name


def _call(node_id: str, function: str) -> Node:
    return Node(node_id, NodeKind.CALL_FUNCTION, "K2Node_CallFunction", attributes={"function": function})


def _getter(node_id: str, variable: str) -> Node:
    return Node(node_id, NodeKind.VARIABLE_GET, "K2Node_VariableGet", attributes={"variable": variable})


class TestSanitize:

    @pytest.mark.parametrize("raw, expected", [
        ("Begin Play", "Begin_Play"),
        ("a--b c", "a_b_c"),
        ("__x__", "x"),
        ("", "Unnamed"),
        ("!!!", "Unnamed"),
        ("Health2", "Health2"),
        (42, "42"),
        (None, "Unnamed"),
    ])
    def test_sanitize_name(self, raw, expected):
        assert sanitize_name(raw) == expected

    def test_class_label_strips_engine_prefixes(self):
        assert class_label(Node("a", NodeKind.EXPRESSION, "MaterialExpressionAdd")) == "Add"
        assert class_label(Node("b", NodeKind.CALL_FUNCTION, "K2Node_CallFunction")) == "CallFunction"
        assert class_label(Node("c", NodeKind.UNKNOWN, "")) == "Unknown"


class TestBaseNames:

    def test_kinds(self, compactor):
        event = Node("e", NodeKind.EVENT, "K2Node_Event", title="Begin Play")
        setter = Node("s", NodeKind.VARIABLE_SET, "K2Node_VariableSet", attributes={"variable": "Health"})
        param = Node("p", NodeKind.PARAMETER, "MaterialExpressionScalarParameter",
                     attributes={"parameter": "Base Tint"})
        const = Node("c", NodeKind.CONSTANT, "MaterialExpressionConstant")

        assert base_name(event, compactor) == "Event_Begin_Play"
        assert base_name(_call("f", "Foo"), compactor) == "Local_Foo"
        assert base_name(_getter("g", "Health"), compactor) == "Local_Health"
        assert base_name(setter, compactor) == "Set_Health"
        assert base_name(param, compactor) == "Param_Base_Tint"
        assert base_name(const, compactor) == "Constant_AA"

    def test_every_kind_has_a_base_name(self):
        for kind in NodeKind:
            assert kind in _BASE_NAMES


class TestAssignNames:

    def test_unique_names_are_kept(self, compactor):
        names = assign_names([_call("a", "Foo"), _call("b", "Bar")], compactor)
        assert names == {"a": "Local_Foo", "b": "Local_Bar"}

    def test_first_holder_keeps_base_name(self, compactor):
        names = assign_names([_call("a", "Foo"), _call("b", "Foo")], compactor)
        assert names == {"a": "Local_Foo", "b": "Local_Foo_AA"}

    def test_numeric_suffix_when_still_shared(self, compactor):
        # b becomes Local_Foo_AA in the second tier, which c already holds
        nodes = [_call("a", "Foo"), _call("b", "Foo"), _getter("c", "Foo_AA")]
        names = assign_names(nodes, compactor)

        assert names == {"a": "Local_Foo", "b": "Local_Foo_AA_0", "c": "Local_Foo_AA_1"}
        assert len(set(names.values())) == len(names)

    def test_deterministic(self):
        nodes = [_call(str(i), "Same") for i in range(5)]
        assert assign_names(nodes, IdentityCompactor()) == assign_names(nodes, IdentityCompactor())

    def test_duplicates_in_input_are_named_once(self, compactor):
        a = _call("a", "Foo")
        assert assign_names([a, a], compactor) == {"a": "Local_Foo"}
