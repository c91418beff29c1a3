import itertools
import numbers
import numpy as np
import sympy as sp
from fractions import Fraction
from functools import cmp_to_key
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import TypeMismatchError
from ..logging_system import LogLevel, get_logger, log_structural


class Expression:
  """Reference-counted handle with copy-on-write value semantics over one Node

  Hashing is structural. A handle written through h[i] = v, set_op or the
  list editors hashes differently afterwards, so mutate a copy rather than a
  handle that is being used as a dict key or set member.
  """

  __slots__ = ('_node', '_bound', '__weakref__')

  def __init__(self, value=None, symbols=None):
    self._bound = False
    if symbols is not None and not isinstance(value, str):
      raise TypeError("symbols can only be given together with text")
    if isinstance(value, Expression):
      node = value._node
    elif isinstance(value, Node):
      node = value
    else:
      source = _from_value(value, symbols)
      node = source._node
    self._node = node
    acquire(node)
    self._bound = True

  def __del__(self):
    if getattr(self, '_bound', False):
      release(self._node)

  # ---- ownership -------------------------------------------------------

  def copy(self) -> 'Expression':
    return Expression(self)

  def __copy__(self) -> 'Expression':
    return Expression(self)

  def __deepcopy__(self, memo) -> 'Expression':
    # nodes are shared values; a deep copy is still just another owner
    return Expression(self)

  def refcount(self) -> int:
    return self._node.refcount

  def is_uniquely_owned(self) -> bool:
    return self._node.refcount == 1

  def swap(self, other: 'Expression'):
    """Exchange the held nodes; reference counts are untouched"""
    self._node, other._node = other._node, self._node

  def _make_writeable(self) -> 'Node':
    node = self._node
    if node.refcount > 1 or node.flags & StatusFlags.FLYWEIGHT:
      clone = node.duplicate()
      acquire(clone)
      self._node = clone
      release(node)
      log_structural(f"copy-on-write clone of {type(node).__name__} "
                     f"(shared by {node.refcount + 1} handles)")
      return clone
    return node

  def _write_path(self, path: List[int], value):
    value = Expression(value)
    chain = [self._make_writeable()]
    for i in path[:-1]:
      parent = chain[-1]
      parent._check_index(i)
      chain.append(parent._operands[i]._make_writeable())
    chain[-1].set_op(path[-1], value)
    for node in chain:
      node._invalidate()

  # ---- operand access --------------------------------------------------

  def nops(self) -> int:
    return self._node.nops()

  def op(self, i: int) -> 'Expression':
    return self._node.op(i)

  def __getitem__(self, i: int) -> 'Expression':
    return self._node.op(i)

  def __setitem__(self, i: int, value):
    self._write_path([i], value)

  def set_op(self, i: int, value) -> 'Expression':
    self._write_path([i], value)
    return self

  def element(self, i: int) -> 'ElementProxy':
    """Writable view of operand i; assignments through it are copy-on-write"""
    self._node._check_index(i)
    return ElementProxy(self, [i])

  def begin(self) -> 'ConstIterator':
    return ConstIterator(self, 0)

  def end(self) -> 'ConstIterator':
    return ConstIterator(self, self._node.nops())

  def __iter__(self):
    return self.begin()

  # ---- list editing ----------------------------------------------------

  def _writeable_container(self) -> 'Container':
    if not isinstance(self._node, Container):
      raise TypeMismatchError('lst', type(self._node).__name__)
    return self._make_writeable()

  def append(self, value) -> 'Expression':
    self._writeable_container()._append(value)
    return self

  def prepend(self, value) -> 'Expression':
    self._writeable_container()._prepend(value)
    return self

  def remove_first(self) -> 'Expression':
    self._writeable_container()._remove(0)
    return self

  def remove_last(self) -> 'Expression':
    self._writeable_container()._remove(-1)
    return self

  # ---- comparison ------------------------------------------------------

  def compare(self, other) -> int:
    other = Expression(other)
    if self._node is other._node:
      return 0
    return self._node.compare(other._node)

  def is_equal(self, other) -> bool:
    other = Expression(other)
    if self._node is other._node:
      return True
    return self._node.is_equal(other._node)

  def is_zero(self) -> bool:
    node = self._node
    return isinstance(node, Numeric) and node.value == 0

  def gethash(self) -> int:
    return self._node.gethash()

  def __eq__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return self.is_equal(other)

  def __ne__(self, other):
    result = self.__eq__(other)
    if result is NotImplemented:
      return result
    return not result

  def __hash__(self):
    return self._node.gethash()

  def info(self, flag) -> bool:
    return self._node.info(flag)

  # ---- arithmetic ------------------------------------------------------

  def __add__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_add([self, other])

  def __radd__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_add([other, self])

  def __sub__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_add([self, make_mul([make_numeric(-1), other])])

  def __rsub__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_add([other, make_mul([make_numeric(-1), self])])

  def __mul__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_mul([self, other])

  def __rmul__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_mul([other, self])

  def __truediv__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_mul([self, make_power(other, make_numeric(-1))])

  def __rtruediv__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_mul([other, make_power(self, make_numeric(-1))])

  def __pow__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_power(self, other)

  def __rpow__(self, other):
    other = _coerce(other)
    if other is NotImplemented:
      return other
    return make_power(other, self)

  def __neg__(self):
    return make_mul([make_numeric(-1), self])

  def __pos__(self):
    return Expression(self)

  # ---- algebra ---------------------------------------------------------

  def eval(self, level: int = 0) -> 'Expression':
    return self._node.eval(level)

  def evalf(self, level: int = 0) -> 'Expression':
    return self._node.evalf(level)

  def diff(self, symbol, nth: int = 1) -> 'Expression':
    symbol = Expression(symbol)
    if not isinstance(symbol._node, Symbol):
      raise TypeMismatchError('symbol', type(symbol._node).__name__,
                              "diff() requires a symbol as differentiation variable")
    return self._node.diff(symbol._node, nth)

  def series(self, relation, order: int, options: int = 0) -> 'Expression':
    return self._node.series(Expression(relation), order, options)

  def subs(self, what, replacement=None, *, options: int = 0) -> 'Expression':
    return self._node.subs(_substitution_pairs(what, replacement), options)

  def match(self, pattern) -> Tuple[bool, Dict['Expression', 'Expression']]:
    bindings: Dict[Expression, Expression] = {}
    if self._node.match(Expression(pattern)._node, bindings):
      return True, bindings
    return False, {}

  def has(self, pattern) -> bool:
    return self._node.has(Expression(pattern)._node)

  def find(self, pattern) -> List['Expression']:
    return self._node.find(Expression(pattern)._node)

  def map(self, fn: Callable) -> 'Expression':
    return self._node.map(fn)

  def expand(self, options: int = 0) -> 'Expression':
    return self._node.expand(options)

  def degree(self, s) -> int:
    return self._node.degree(Expression(s)._node)

  def ldegree(self, s) -> int:
    return self._node.ldegree(Expression(s)._node)

  def coeff(self, s, n: int = 1) -> 'Expression':
    return self._node.coeff(Expression(s)._node, n)

  def lcoeff(self, s) -> 'Expression':
    return self.coeff(s, self.degree(s))

  def tcoeff(self, s) -> 'Expression':
    return self.coeff(s, self.ldegree(s))

  def collect(self, s) -> 'Expression':
    """Sum of coeff(s, n) * s^n over the degrees present in the expanded form"""
    s = Expression(s)
    expanded = self.expand()
    terms = []
    for n in range(expanded.ldegree(s), expanded.degree(s) + 1):
      c = expanded.coeff(s, n)
      if not c.is_zero():
        terms.append(make_mul([c, make_power(s, make_numeric(n))]))
    return make_add(terms)

  def is_polynomial(self, var) -> bool:
    return self._node.is_polynomial(Expression(var)._node)

  def smod(self, xi: int) -> 'Expression':
    return self._node.smod(xi)

  def integer_content(self) -> 'Expression':
    """Positive rational content of the numeric coefficients of the expanded form"""
    return self.expand()._node.integer_content()

  def max_coefficient(self) -> 'Expression':
    """Largest absolute numeric coefficient of the expanded form"""
    return self.expand()._node.max_coefficient()

  def symmetrize(self, objects=None) -> 'Expression':
    """Average over every permutation of objects (default: the free indices)"""
    return _symmetrized(self, objects, lambda n: itertools.permutations(range(n)))

  def antisymmetrize(self, objects=None) -> 'Expression':
    """Signed average over every permutation of objects"""
    return _symmetrized(self, objects, lambda n: itertools.permutations(range(n)), signed=True)

  def symmetrize_cyclic(self, objects=None) -> 'Expression':
    """Average over the cyclic shifts of objects"""
    return _symmetrized(self, objects, _cyclic_shifts)

  def return_type(self) -> 'ReturnType':
    return self._node.return_type()

  def return_type_tinfo(self) -> str:
    return self._node.return_type_tinfo()

  def get_free_indices(self) -> List['Expression']:
    return self._node.get_free_indices()

  def lhs(self) -> 'Expression':
    if not isinstance(self._node, Relational):
      raise TypeMismatchError('relational', type(self._node).__name__)
    return self._node.op(0)

  def rhs(self) -> 'Expression':
    if not isinstance(self._node, Relational):
      raise TypeMismatchError('relational', type(self._node).__name__)
    return self._node.op(1)

  # ---- output and bridges ----------------------------------------------

  def print(self, c, level: int = 0):
    self._node.print(c, level)

  def to_string(self) -> str:
    from .utils.printing import PrintContext
    return PrintContext.render(self)

  def __str__(self):
    return self.to_string()

  def __repr__(self):
    return f"Expression({self.to_string()!r})"

  def dbgprint(self) -> str:
    """Log the infix form at minimal level and return it"""
    text = self.to_string()
    get_logger().info(text, LogLevel.MINIMAL)
    return text

  def dbgprinttree(self) -> str:
    """Log the node tree with hashes, flags and reference counts"""
    from .utils.printing import PrintTree
    text = PrintTree.render(self)
    get_logger().info(text, LogLevel.MINIMAL)
    return text

  def to_sympy(self) -> sp.Basic:
    return self._node.to_sympy()

  def evaluate(self, bindings: Dict) -> np.ndarray:
    """Vectorized numeric value over broadcast arrays bound to symbol names"""
    arrays = {}
    for key, value in bindings.items():
      if isinstance(key, Expression):
        if not isinstance(key._node, Symbol):
          raise TypeMismatchError('symbol', type(key._node).__name__)
        key = key._node.name
      arrays[key] = np.asarray(value, dtype=np.float64)
    shape = np.broadcast_shapes(*(a.shape for a in arrays.values())) if arrays else ()
    n_samples = int(np.prod(shape, dtype=np.int64))
    env = {name: np.ascontiguousarray(np.broadcast_to(a, shape).ravel()) for name, a in arrays.items()}
    result = np.asarray(self._node.evaluate(env, n_samples), dtype=np.float64)
    return np.broadcast_to(result, (n_samples,)).reshape(shape)


class ElementProxy:
  """Path into a handle's tree; element(i)[j] = v rewrites operand j of operand i"""

  __slots__ = ('_owner', '_path')

  def __init__(self, owner: Expression, path: List[int]):
    self._owner = owner
    self._path = path

  def value(self) -> Expression:
    node = self._owner._node
    for i in self._path:
      node._check_index(i)
      node = node._operands[i]._node
    return Expression(node)

  def __getitem__(self, j: int) -> Expression:
    return self.value()[j]

  def __setitem__(self, j: int, value):
    self._owner._write_path(self._path + [j], value)

  def element(self, j: int) -> 'ElementProxy':
    return ElementProxy(self._owner, self._path + [j])

  def __repr__(self):
    return f"ElementProxy({self.value().to_string()!r}, path={self._path})"


def _from_value(value, symbols) -> Expression:
  if value is None:
    return get_flyweights().zero()
  if isinstance(value, str):
    from .utils.sympy_utils import parse_expression
    return parse_expression(value, symbols)
  if isinstance(value, bool):
    raise TypeError("cannot build an expression from bool")
  if isinstance(value, numbers.Number):
    return make_numeric(value)
  raise TypeError(f"cannot build an expression from {type(value).__name__}")


def _cyclic_shifts(n: int):
  return [tuple((k + s) % n for k in range(n)) for s in range(n)]


def _permutation_sign(order) -> int:
  inversions = sum(1 for i, a in enumerate(order) for b in order[i + 1:] if a > b)
  return -1 if inversions % 2 else 1


def _symmetrized(e: Expression, objects, orderings: Callable, signed: bool = False) -> Expression:
  objects = e.get_free_indices() if objects is None else _as_list(objects)
  if len(objects) < 2:
    return Expression(e)
  terms = []
  for order in orderings(len(objects)):
    term = e.subs(objects, [objects[k] for k in order], options=SubsOptions.NO_PATTERN)
    if signed and _permutation_sign(order) < 0:
      term = -term
    terms.append(term)
  return make_mul([make_add(terms), make_numeric(Fraction(1, len(terms)))])


def _coerce(value):
  if isinstance(value, (Expression, Node)):
    return Expression(value)
  if isinstance(value, numbers.Number) and not isinstance(value, bool):
    return make_numeric(value)
  return NotImplemented


def _substitution_pairs(what, replacement) -> List[Tuple[Expression, Expression]]:
  if isinstance(what, dict):
    if replacement is not None:
      raise TypeError("a substitution dict takes no separate replacement")
    return [(Expression(k), Expression(v)) for k, v in what.items()]
  if replacement is not None:
    if _is_sequence(what) or _is_sequence(replacement):
      patterns, values = _as_list(what), _as_list(replacement)
      if len(patterns) != len(values):
        raise ValueError("subs: patterns and replacements must have the same length")
      return list(zip(patterns, values))
    return [(Expression(what), Expression(replacement))]
  what = Expression(what)
  if isinstance(what._node, Relational):
    return [(what._node.op(0), what._node.op(1))]
  if isinstance(what._node, Lst):
    pairs = []
    for item in what:
      if not isinstance(item._node, Relational):
        raise TypeMismatchError('relation', type(item._node).__name__,
                                "subs: list must contain only relations")
      pairs.append((item._node.op(0), item._node.op(1)))
    return pairs
  raise TypeMismatchError('relation or list of relations', type(what._node).__name__)


def _is_sequence(value) -> bool:
  if isinstance(value, (list, tuple)):
    return True
  return isinstance(value, Expression) and isinstance(value._node, Lst)


def _as_list(value) -> List[Expression]:
  if isinstance(value, Expression):
    if isinstance(value._node, Lst):
      return list(value)
    return [Expression(value)]
  return [Expression(v) for v in value]


# ---- module-level helpers ----------------------------------------------------

def are_trivially_equal(a: Expression, b: Expression) -> bool:
  """Identity check only; False does not mean the expressions differ"""
  return a._node is b._node


def swap(a: Expression, b: Expression):
  a.swap(b)


def ex_is_equal(a, b) -> bool:
  return Expression(a).is_equal(b)


ex_is_less = cmp_to_key(lambda a, b: Expression(a).compare(b))


def symbol(name: str, commutative: bool = True) -> Expression:
  return Expression(Symbol(name, commutative))


def symbols(names: str, commutative: bool = True) -> Tuple[Expression, ...]:
  """symbols('x y z') -> three symbol handles"""
  return tuple(symbol(n, commutative) for n in names.replace(',', ' ').split())


def wild(label: int = 0) -> Expression:
  return Expression(Wildcard(label))


def constant(name: str) -> Expression:
  return Expression(Constant(name))


def relation(lhs, rhs, operator: str = '==') -> Expression:
  return make_relational(Expression(lhs), Expression(rhs), operator)


def lst(*values) -> Expression:
  return make_lst(*[Expression(v) for v in values])


def function(name: str, *args) -> Expression:
  return make_function(name, *[Expression(a) for a in args])


def indexed(base, *indices) -> Expression:
  return make_indexed(Expression(base), *[Expression(i) for i in indices])


from .core.node import (  # noqa: E402
  Node, Numeric, Constant, Symbol, Wildcard, Relational, Container, Lst,
  acquire, release, make_numeric, make_add, make_mul, make_power, make_function,
  make_relational, make_lst, make_indexed
)
from .core.operators import StatusFlags, ReturnType, SubsOptions  # noqa: E402
from .optimization.flyweights import get_flyweights  # noqa: E402
from .core.iterator import ConstIterator  # noqa: E402
