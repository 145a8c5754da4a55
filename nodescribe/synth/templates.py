"""
nodescribe synthesis: Code Writer + Annotations
=================================================
CodeWriter accumulates indented pseudocode lines (4 spaces per level).

Every statement line carries a trailing annotation naming the node it came
from, so a reader can map text back onto the graph:

    float Constant_AA = 1.0; // [AA] (0,0)
    Local_Foo(); // [AQ] (320,16) "Foo"

The annotation is `// [<compact-id>] (<x>,<y>)` with ` "<title>"` appended
when the node has a title.
"""

from __future__ import annotations

from typing import List, Optional

from nodescribe.core.GraphPrimitives import Node
from nodescribe.synth.identity import IdentityCompactor


# ── Code writer ───────────────────────────────────────────────────────────────

class CodeWriter:
    """Simple indented string accumulator."""

    INDENT = "    "

    def __init__(self, indent: int = 0):
        self._lines: List[str] = []
        self._indent = indent

    def writeln(self, line: str = "", annotation: Optional[str] = None) -> "CodeWriter":
        if annotation:
            line = f"{line} {annotation}" if line else annotation
        if line:
            self._lines.append(self.INDENT * self._indent + line)
        else:
            self._lines.append("")
        return self

    def blank(self) -> "CodeWriter":
        return self.writeln()

    def comment(self, text: str) -> "CodeWriter":
        return self.writeln(f"// {text}")

    def open(self) -> "CodeWriter":
        """Write `{` and indent."""
        self.writeln("{")
        return self.push()

    def close(self) -> "CodeWriter":
        """Dedent and write `}`."""
        self.pop()
        return self.writeln("}")

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def lines(self) -> List[str]:
        return self._lines


# ── Trailing annotation ───────────────────────────────────────────────────────

def trailing_comment(node: Node, compactor: IdentityCompactor, title: Optional[str] = None) -> str:
    compact = compactor.compact(node.id)
    label = node.title if title is None else title
    if not label:
        return f"// [{compact}] ({node.x},{node.y})"
    return f'// [{compact}] ({node.x},{node.y}) "{label}"'
