import sympy as sp
from fractions import Fraction
from tokenize import TokenError
from typing import Dict, Optional
from sympy.core.function import AppliedUndef
from sympy.parsing.sympy_parser import parse_expr, standard_transformations, convert_xor

from ...errors import ParseError, TypeMismatchError
from ...logging_system import log_debug
from ..core.node import (
  FUNCTION_REGISTRY, Relational, Symbol, Wildcard, Constant, Indexed,
  make_numeric, make_add, make_mul, make_power, make_function, make_relational, make_lst,
  make_indexed
)
from ..core.operators import SeriesOptions
from ..expression import Expression

_TRANSFORMATIONS = standard_transformations + (convert_xor,)

_PARSE_ERRORS = (SyntaxError, TokenError, TypeError, NameError, AttributeError,
                 ZeroDivisionError, ValueError)

_SYMPY_CONSTANTS = {sp.pi: 'Pi', sp.EulerGamma: 'Euler', sp.Catalan: 'Catalan'}


def _sympy_function(name: str):
  spec = FUNCTION_REGISTRY[name]
  return getattr(sp, spec.sympy_name or name, None) or sp.Function(name)


def _registry_name(func: sp.Basic) -> Optional[str]:
  sympy_name = type(func).__name__
  for name, spec in FUNCTION_REGISTRY.items():
    if (spec.sympy_name or name) == sympy_name:
      return name
  return None


def _global_namespace() -> dict:
  namespace = {
    'Integer': sp.Integer, 'Float': sp.Float, 'Rational': sp.Rational,
    'Symbol': sp.Symbol, 'Function': sp.Function,
    'Add': sp.Add, 'Mul': sp.Mul, 'Pow': sp.Pow,
    'Eq': sp.Eq, 'Ne': sp.Ne, 'Lt': sp.Lt, 'Le': sp.Le, 'Gt': sp.Gt, 'Ge': sp.Ge,
    'I': sp.I, 'Pi': sp.pi, 'Euler': sp.EulerGamma, 'Catalan': sp.Catalan,
  }
  for name in FUNCTION_REGISTRY:
    namespace[name] = _sympy_function(name)
  return namespace


def declared_symbols(symbols) -> Dict[str, Expression]:
  """Name -> symbol handle for an Lst handle or any iterable of symbol handles"""
  declared: Dict[str, Expression] = {}
  if symbols is None:
    return declared
  items = [symbols] if isinstance(symbols, Expression) and isinstance(symbols._node, Symbol) \
      else [Expression(s) for s in symbols]
  for item in items:
    if not isinstance(item._node, Symbol):
      raise TypeMismatchError('symbol', type(item._node).__name__,
                              "symbol table may only contain symbols")
    declared[item._node.name] = item
  return declared


def parse_expression(text: str, symbols=None) -> Expression:
  """
  Parse text into an expression over the declared symbols.

  Args:
      text: infix source, '^' and '**' both denote powers
      symbols: Lst handle or iterable of symbol handles allowed in text

  Returns:
      Canonical expression handle

  Raises:
      ParseError: malformed text, undeclared symbol or unknown function
  """
  declared = declared_symbols(symbols)
  local_dict = {name: handle.to_sympy() for name, handle in declared.items()}
  try:
    result = parse_expr(text, local_dict=local_dict, global_dict=_global_namespace(),
                        transformations=_TRANSFORMATIONS, evaluate=False)
  except _PARSE_ERRORS as e:
    log_debug(f"parse of {text!r} failed: {e}")
    raise ParseError(text, str(e) or type(e).__name__) from e

  if not isinstance(result, sp.Basic):
    raise ParseError(text, "not an algebraic expression")
  undeclared = sorted(s.name for s in result.free_symbols
                      if isinstance(s, sp.Symbol) and s.name not in declared)
  if undeclared:
    raise ParseError(text, f"undeclared symbol(s): {', '.join(undeclared)}")
  unknown = sorted({type(f).__name__ for f in result.atoms(AppliedUndef)
                    if type(f).__name__ not in FUNCTION_REGISTRY})
  if unknown:
    raise ParseError(text, f"unknown function(s): {', '.join(unknown)}")

  try:
    return from_sympy(result, declared)
  except (ValueError, ZeroDivisionError) as e:
    raise ParseError(text, str(e)) from e


def from_sympy(expr: sp.Basic, declared: Optional[Dict[str, Expression]] = None) -> Expression:
  """Convert a sympy object back into a canonical expression"""
  if declared is None:
    declared = {}

  if isinstance(expr, sp.Integer):
    return make_numeric(int(expr))
  if isinstance(expr, sp.Rational):
    return make_numeric(Fraction(int(expr.p), int(expr.q)))
  if isinstance(expr, sp.Float):
    return make_numeric(float(expr))
  if expr is sp.I:
    return make_numeric(1j)
  if expr in _SYMPY_CONSTANTS:
    return Expression(Constant(_SYMPY_CONSTANTS[expr]))
  if expr is sp.E:
    return make_function('exp', make_numeric(1))
  if isinstance(expr, sp.Wild):
    return Expression(Wildcard(int(expr.name.lstrip('w') or 0)))
  if isinstance(expr, sp.Symbol):
    if expr.name in declared:
      return Expression(declared[expr.name])
    return Expression(Symbol(expr.name, commutative=bool(expr.is_commutative)))
  if isinstance(expr, sp.Add):
    return make_add([from_sympy(a, declared) for a in expr.args])
  if isinstance(expr, sp.Mul):
    return make_mul([from_sympy(a, declared) for a in expr.args])
  if isinstance(expr, sp.Pow):
    return make_power(from_sympy(expr.base, declared), from_sympy(expr.exp, declared))
  if isinstance(expr, sp.Order):
    return make_function('Order', from_sympy(expr.expr, declared))
  if isinstance(expr, sp.Function):
    name = _registry_name(expr)
    if name is None:
      raise ValueError(f"unsupported function {type(expr).__name__}")
    return make_function(name, *[from_sympy(a, declared) for a in expr.args])
  if isinstance(expr, sp.Indexed):
    return make_indexed(from_sympy(expr.base.label, declared),
                        *[from_sympy(i, declared) for i in expr.indices])
  if isinstance(expr, sp.core.relational.Relational):
    return make_relational(from_sympy(expr.lhs, declared), from_sympy(expr.rhs, declared), expr.rel_op)
  if isinstance(expr, sp.Tuple):
    return make_lst(*[from_sympy(a, declared) for a in expr.args])
  raise ValueError(f"unsupported sympy object {expr!r}")


def series_via_sympy(expr: Expression, relation: Expression, order: int, options: int = 0) -> Expression:
  """Truncated power series of expr around the point given by relation (x==a, or x for x==0)"""
  node = relation._node
  if isinstance(node, Relational):
    if node.operator != '==':
      raise TypeMismatchError('equality', node.operator, "series point must be given as var==point")
    var, point = node.op(0), node.op(1)
  else:
    var, point = relation, make_numeric(0)
  if not isinstance(var._node, Symbol):
    raise TypeMismatchError('symbol', type(var._node).__name__, "series variable must be a symbol")

  from .tree_utils import get_symbols
  declared = get_symbols(expr)
  declared.update(get_symbols(var))
  direction = '-' if options & SeriesOptions.FROM_BELOW else '+'
  result = sp.series(expr.to_sympy(), var.to_sympy(), point.to_sympy(), n=order, dir=direction)
  if options & SeriesOptions.REMOVE_ORDER:
    result = result.removeO()
  return from_sympy(result, declared)


def to_latex(expr: Expression) -> str:
  """LaTeX representation through sympy"""
  return sp.latex(expr.to_sympy())
