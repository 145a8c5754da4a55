from enum import Enum, auto


class PortDirection(Enum):
    INPUT = auto()
    OUTPUT = auto()


class PortFunction(Enum):
    DATA = auto()
    CONTROL = auto()


# Pin value categories as they appear in editor snapshots.
class ValueType(Enum):
    EXEC = "exec"
    BOOL = "bool"
    BYTE = "byte"
    INT = "int"
    INT64 = "int64"
    REAL = "real"
    FLOAT = "float"
    DOUBLE = "double"
    NAME = "name"
    STRING = "string"
    TEXT = "text"
    OBJECT = "object"
    CLASS = "class"
    SOFT_OBJECT = "softobject"
    SOFT_CLASS = "softclass"
    INTERFACE = "interface"
    STRUCT = "struct"
    ENUM = "enum"
    DELEGATE = "delegate"
    MC_DELEGATE = "mcdelegate"
    FIELD_PATH = "fieldpath"
    WILDCARD = "wildcard"

    @staticmethod
    def parse(value: str) -> "ValueType":
        try:
            return ValueType(value.lower())
        except ValueError:
            return ValueType.WILDCARD


class ContainerType(Enum):
    NONE = "none"
    ARRAY = "array"
    SET = "set"
    MAP = "map"


class NodeKind(Enum):
    # entry points
    EVENT = auto()
    CUSTOM_EVENT = auto()
    FUNCTION_ENTRY = auto()
    MACRO_ENTRY = auto()

    # terminals
    FUNCTION_RESULT = auto()
    MACRO_EXIT = auto()

    # statements
    CALL_FUNCTION = auto()
    VARIABLE_GET = auto()
    VARIABLE_SET = auto()
    SELF = auto()
    SPAWN_ACTOR = auto()
    MAKE_ARRAY = auto()
    SELECT = auto()
    DYNAMIC_CAST = auto()

    # control constructs
    BRANCH = auto()
    SEQUENCE = auto()
    SWITCH = auto()
    MACRO_INSTANCE = auto()

    # passthrough
    KNOT = auto()
    NAMED_REROUTE_DECLARATION = auto()
    NAMED_REROUTE_USAGE = auto()

    # expression graphs
    CONSTANT = auto()
    PARAMETER = auto()
    EXPRESSION = auto()
    SINK = auto()

    COMMENT = auto()
    UNKNOWN = auto()


ENTRY_KINDS = frozenset({
    NodeKind.EVENT,
    NodeKind.CUSTOM_EVENT,
    NodeKind.FUNCTION_ENTRY,
    NodeKind.MACRO_ENTRY,
})
