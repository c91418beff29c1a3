"""Error taxonomy for the expression core.

Every error derives from AlgebraError and from the closest builtin exception,
so code that already catches ValueError/TypeError/IndexError keeps working.
"""

from typing import Optional


class AlgebraError(Exception):
  """Base class of all errors raised by symbolic_algebra"""


class TypeMismatchError(AlgebraError, TypeError):
  """A downcast or a kind-specific request hit a node of the wrong kind"""

  def __init__(self, expected: str, actual: str, message: Optional[str] = None):
    self.expected = expected
    self.actual = actual
    super().__init__(message or f"expected {expected}, got {actual}")


class OperandIndexError(AlgebraError, IndexError):
  """Operand index outside [0, nops)"""

  def __init__(self, index: int, nops: int):
    self.index = index
    self.nops = nops
    super().__init__(f"operand index {index} out of range (nops={nops})")


class ParseError(AlgebraError, ValueError):
  """Construction from text failed: malformed input or undeclared name"""

  def __init__(self, text: str, reason: str):
    self.text = text
    self.reason = reason
    super().__init__(f"cannot parse {text!r}: {reason}")


class InconsistencyError(AlgebraError):
  """Two parts of the algebra disagree about the same expression"""


class RecursionLimitError(AlgebraError, RuntimeError):
  """eval/evalf descended past the configured recursion budget"""
