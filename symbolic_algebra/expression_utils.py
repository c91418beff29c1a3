# expression_utils.py
import sympy as sp
from collections import OrderedDict
from typing import Dict, List, Tuple

from .config import get_settings

from .expression_tree import Expression
from .expression_tree.utils.sympy_utils import from_sympy
from .expression_tree.utils.tree_utils import get_symbols

# hash -> (input, simplified), least recently used first; the input rules out hash collisions
_SIMPLIFICATION_CACHE: "OrderedDict[int, Tuple[Expression, Expression]]" = OrderedDict()


def nops(e) -> int:
  return Expression(e).nops()


def op(e, i: int) -> Expression:
  return Expression(e).op(i)


def eval(e, level: int = 0) -> Expression:
  return Expression(e).eval(level)


def evalf(e, level: int = 0) -> Expression:
  return Expression(e).evalf(level)


def expand(e, options: int = 0) -> Expression:
  return Expression(e).expand(options)


def has(e, pattern) -> bool:
  return Expression(e).has(pattern)


def degree(e, s) -> int:
  return Expression(e).degree(s)


def ldegree(e, s) -> int:
  return Expression(e).ldegree(s)


def coeff(e, s, n: int = 1) -> Expression:
  return Expression(e).coeff(s, n)


def collect(e, s) -> Expression:
  return Expression(e).collect(s)


def diff(e, s, nth: int = 1) -> Expression:
  return Expression(e).diff(s, nth)


def series(e, relation, order: int, options: int = 0) -> Expression:
  return Expression(e).series(relation, order, options)


def subs(e, what, replacement=None, *, options: int = 0) -> Expression:
  return Expression(e).subs(what, replacement, options=options)


def match(e, pattern) -> Tuple[bool, Dict[Expression, Expression]]:
  return Expression(e).match(pattern)


def is_zero(e) -> bool:
  return Expression(e).is_zero()


def lhs(e) -> Expression:
  return Expression(e).lhs()


def rhs(e) -> Expression:
  return Expression(e).rhs()


def integer_content(e) -> Expression:
  return Expression(e).integer_content()


def max_coefficient(e) -> Expression:
  return Expression(e).max_coefficient()


def symmetrize(e, objects=None) -> Expression:
  return Expression(e).symmetrize(objects)


def antisymmetrize(e, objects=None) -> Expression:
  return Expression(e).antisymmetrize(objects)


def symmetrize_cyclic(e, objects=None) -> Expression:
  return Expression(e).symmetrize_cyclic(objects)


def swap(a: Expression, b: Expression):
  a.swap(b)


def free_symbols(e) -> List[Expression]:
  """Distinct symbols of e, sorted by name"""
  found = get_symbols(Expression(e))
  return [found[name] for name in sorted(found)]


def sympy_simplify(e) -> Expression:
  """Round-trip through sympy.simplify, caching by structural hash"""
  e = Expression(e)
  key = e.gethash()
  cached = _SIMPLIFICATION_CACHE.get(key)
  if cached is not None and cached[0].is_equal(e):
    _SIMPLIFICATION_CACHE.move_to_end(key)
    return Expression(cached[1])
  result = from_sympy(sp.simplify(e.to_sympy()), get_symbols(e))
  _SIMPLIFICATION_CACHE[key] = (e, result)
  _SIMPLIFICATION_CACHE.move_to_end(key)
  while len(_SIMPLIFICATION_CACHE) > get_settings().simplification_cache_size:
    _SIMPLIFICATION_CACHE.popitem(last=False)
  return Expression(result)


def clear_simplification_cache():
  """Drop every cached pair and the handles they keep alive"""
  _SIMPLIFICATION_CACHE.clear()
