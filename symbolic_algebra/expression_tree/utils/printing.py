import io
import sympy as sp
from typing import Optional, TextIO

from ..core.node import Node
from ..core.operators import StatusFlags
from ..expression import Expression


class PrintContext:
  """Default infix output: x-2*y, x^(-1), {a,b}, A.i.j"""

  def __init__(self, stream: Optional[TextIO] = None):
    self.stream = stream if stream is not None else io.StringIO()

  def emit(self, node: Node, level: int):
    node._print(self, level)

  @classmethod
  def render(cls, e: Expression, level: int = 0) -> str:
    c = cls()
    e.print(c, level)
    return c.stream.getvalue()


class PrintLatex(PrintContext):
  """LaTeX output, produced by sympy from the converted tree"""

  def emit(self, node: Node, level: int):
    self.stream.write(sp.latex(node.to_sympy()))


class PrintTree(PrintContext):
  """Indented dump of the node tree with hash, flags and reference count"""

  def __init__(self, stream: Optional[TextIO] = None, indent: int = 4):
    super().__init__(stream)
    self.indent = indent

  def emit(self, node: Node, level: int):
    stack = [(node, max(level, 0))]
    while stack:
      current, depth = stack.pop()
      self.stream.write(' ' * (depth * self.indent) + self.describe(current) + '\n')
      stack.extend((h._node, depth + 1) for h in reversed(current._operands))

  @staticmethod
  def describe(node: Node) -> str:
    flags = '|'.join(f.name for f in StatusFlags if f and node.flags & f) or 'NONE'
    text = f"{type(node).__name__} @{id(node):#x}"
    if not node._operands:
      leaf = PrintContext()
      node._print(leaf, 0)
      text += f" {leaf.stream.getvalue()}"
    return (f"{text}, hash={node.gethash() & 0xffffffff:#010x}, flags={flags}, "
            f"refcount={node.refcount}, nops={node.nops()}")
