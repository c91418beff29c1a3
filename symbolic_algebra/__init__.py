"""Symbolic Algebra Package

Value-semantics expression handles over reference-counted, copy-on-write
expression trees, with a compact algebra per node kind and sympy as the
parsing, series and LaTeX collaborator.
"""

from .expression_tree import (
  Expression, ElementProxy, ConstIterator,
  Node, Numeric, Constant, Symbol, Wildcard, ExpairSeq, Add, Mul, Power,
  Function, FunctionSpec, register_function, Relational, Container, Lst, Indexed,
  are_trivially_equal, ex_is_equal, ex_is_less,
  symbol, symbols, wild, constant, relation, lst, function, indexed,
  live_node_count,
  TypeTag, StatusFlags, InfoFlags, ReturnType, SubsOptions, SeriesOptions, ExpandOptions,
  is_a, is_exactly_a, ex_to, ex_to_checked,
  ContainerBuilder, PrintContext, PrintLatex, PrintTree, ExpressionValidator,
  get_flyweights, reset_flyweights
)
from .errors import (
  AlgebraError, TypeMismatchError, OperandIndexError, ParseError,
  InconsistencyError, RecursionLimitError
)
from .config import AlgebraSettings, get_settings, configure, reset_settings
from .logging_system import LogLevel, get_logger, configure_logging, set_log_level
from .expression_utils import swap, free_symbols, sympy_simplify

__version__ = "0.1.0"
__all__ = [
  "Expression", "ElementProxy", "ConstIterator",
  "Node", "Numeric", "Constant", "Symbol", "Wildcard", "ExpairSeq", "Add", "Mul", "Power",
  "Function", "FunctionSpec", "register_function", "Relational", "Container", "Lst", "Indexed",
  "are_trivially_equal", "ex_is_equal", "ex_is_less",
  "symbol", "symbols", "wild", "constant", "relation", "lst", "function", "indexed",
  "live_node_count",
  "TypeTag", "StatusFlags", "InfoFlags", "ReturnType", "SubsOptions", "SeriesOptions", "ExpandOptions",
  "is_a", "is_exactly_a", "ex_to", "ex_to_checked",
  "ContainerBuilder", "PrintContext", "PrintLatex", "PrintTree", "ExpressionValidator",
  "get_flyweights", "reset_flyweights",
  "AlgebraError", "TypeMismatchError", "OperandIndexError", "ParseError",
  "InconsistencyError", "RecursionLimitError",
  "AlgebraSettings", "get_settings", "configure", "reset_settings",
  "LogLevel", "get_logger", "configure_logging", "set_log_level",
  "swap", "free_symbols", "sympy_simplify"
]
