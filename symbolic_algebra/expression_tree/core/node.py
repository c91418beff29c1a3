import math
import numbers
import numpy as np
import sympy as sp
from abc import ABC, abstractmethod
from dataclasses import dataclass
from fractions import Fraction
from functools import cmp_to_key
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ...config import get_settings
from ...errors import (
  AlgebraError, InconsistencyError, OperandIndexError, RecursionLimitError, TypeMismatchError
)
from ...logging_system import log_warning
from .operators import (
  TypeTag, StatusFlags, InfoFlags, ReturnType, SubsOptions, ExpandOptions,
  FUNCTION_OP_MAP, CONSTANT_VALUES,
  evaluate_constant, evaluate_power, evaluate_function_fast, evaluate_function_scalar
)
from ..expression import Expression

# Printing precedences
PREC_RELATIONAL = 20
PREC_ADD = 40
PREC_MUL = 50
PREC_POWER = 60
PREC_ATOM = 70

_live_nodes = 0


def live_node_count() -> int:
  """Number of nodes currently owned by at least one handle"""
  return _live_nodes


def acquire(node: 'Node'):
  """Register one more owning handle on node"""
  global _live_nodes
  node.refcount += 1
  if node.refcount == 1:
    _live_nodes += 1
    node.flags |= StatusFlags.DYNALLOCATED
    if node.flags & StatusFlags.RELEASED:
      _revive(node)


def release(node: 'Node'):
  """Drop one owning handle; tears the subtree down when the count hits zero"""
  node.refcount -= 1
  if node.refcount == 0:
    _teardown(node)


def _teardown(root: 'Node'):
  global _live_nodes
  pending = [root]
  while pending:
    node = pending.pop()
    _live_nodes -= 1
    node.flags |= StatusFlags.RELEASED
    for handle in node._operands:
      if handle._bound:
        handle._bound = False
        child = handle._node
        child.refcount -= 1
        if child.refcount == 0:
          pending.append(child)


def _revive(root: 'Node'):
  # root has already been counted by acquire()
  global _live_nodes
  root.flags &= ~StatusFlags.RELEASED
  pending = [root]
  while pending:
    node = pending.pop()
    for handle in node._operands:
      if not handle._bound:
        handle._bound = True
        child = handle._node
        child.refcount += 1
        if child.refcount == 1:
          _live_nodes += 1
          if child.flags & StatusFlags.RELEASED:
            child.flags &= ~StatusFlags.RELEASED
            pending.append(child)


def _cmp(a, b) -> int:
  return (a > b) - (a < b)


def _check_level(level: int):
  limit = get_settings().max_recursion_level
  if level <= -limit:
    log_warning(f"eval recursion budget of {limit} levels exhausted")
    raise RecursionLimitError(f"max recursion level {limit} reached")


def _evaluate_tree(root: 'Node', level: int, numeric: bool) -> Expression:
  """Post-order eval/evalf driven by an explicit stack; level drops by one per tree level"""
  results: List[Expression] = []
  stack = [(root, level, False)]
  while stack:
    node, lvl, ready = stack.pop()
    if ready:
      n = len(node._operands)
      operands = results[len(results) - n:]
      del results[len(results) - n:]
      results.append(node._evalf_combine(operands) if numeric else node._rebuild(operands))
      continue
    done = node._evalf_leaf(lvl) if numeric else node._eval_leaf(lvl)
    if done is not None:
      results.append(done)
      continue
    _check_level(lvl)
    stack.append((node, lvl, True))
    stack.extend((h._node, lvl - 1, False) for h in reversed(node._operands))
  return results[0]


class Node(ABC):
  """Polymorphic tree node: operand handles, reference count, cached hash and status flags"""

  __slots__ = ('_operands', 'refcount', 'flags', '_hash_cache', '__weakref__')

  tag = TypeTag.BASIC

  def __init__(self, operands: Iterable = ()):
    self._operands: List[Expression] = [Expression(o) for o in operands]
    self.refcount = 0
    self.flags = StatusFlags.NONE
    self._hash_cache: Optional[int] = None

  # ---- operand access -------------------------------------------------

  def nops(self) -> int:
    return len(self._operands)

  def _check_index(self, i: int):
    if not isinstance(i, numbers.Integral) or not 0 <= i < len(self._operands):
      raise OperandIndexError(i, len(self._operands))

  def op(self, i: int) -> Expression:
    self._check_index(i)
    return Expression(self._operands[i])

  def set_op(self, i: int, value):
    """In-place operand write; only valid on a uniquely owned node"""
    self._check_index(i)
    self._operands[i] = Expression(value)
    self._invalidate()

  def _invalidate(self):
    self._hash_cache = None
    self.flags &= ~(StatusFlags.EVALUATED | StatusFlags.EXPANDED | StatusFlags.HASH_CALCULATED)

  def duplicate(self) -> 'Node':
    """Shallow clone sharing every operand node"""
    clone = type(self).__new__(type(self))
    Node.__init__(clone, self._operands)
    clone._copy_payload(self)
    clone.flags = self.flags & (StatusFlags.EVALUATED | StatusFlags.EXPANDED)
    return clone

  def _copy_payload(self, other: 'Node'):
    pass

  def hold(self) -> Expression:
    return Expression(self)

  # ---- identity, hashing and ordering ---------------------------------

  def _payload_key(self) -> tuple:
    return ()

  def gethash(self) -> int:
    if self.flags & StatusFlags.HASH_CALCULATED:
      return self._hash_cache
    # children first, so _compute_hash only ever reads cached operand hashes
    stack = [self]
    while stack:
      node = stack[-1]
      missing = [h._node for h in node._operands if not h._node.flags & StatusFlags.HASH_CALCULATED]
      if missing:
        stack.extend(missing)
        continue
      stack.pop()
      if not node.flags & StatusFlags.HASH_CALCULATED:
        node._hash_cache = node._compute_hash()
        node.flags |= StatusFlags.HASH_CALCULATED
    return self._hash_cache

  def _compute_hash(self) -> int:
    return hash((self.tag, self._payload_key(), tuple(h._node.gethash() for h in self._operands)))

  def compare(self, other: 'Node') -> int:
    """Total order: type tag, then payload and operand count, then operands left to right"""
    pairs = [(self, other)]
    while pairs:
      a, b = pairs.pop()
      if a is b:
        continue
      c = _cmp(a.tag, b.tag) or a.compare_same_type(b)
      if c:
        return c
      pairs.extend(zip([h._node for h in reversed(a._operands)],
                       [h._node for h in reversed(b._operands)]))
    return 0

  def compare_same_type(self, other: 'Node') -> int:
    """Order of two nodes of one kind, ignoring their operands"""
    c = _cmp(self._payload_key(), other._payload_key())
    if c:
      return c
    return _cmp(len(self._operands), len(other._operands))

  def is_equal(self, other: 'Node') -> bool:
    if self is other:
      return True
    if self.gethash() != other.gethash():
      return False
    return self.compare(other) == 0

  # ---- evaluation ------------------------------------------------------

  def eval(self, level: int = 0) -> Expression:
    return _evaluate_tree(self, level, numeric=False)

  def evalf(self, level: int = 0) -> Expression:
    return _evaluate_tree(self, level, numeric=True)

  def _eval_leaf(self, level: int) -> Optional[Expression]:
    """Result of eval without visiting operands, or None to descend"""
    if self.flags & StatusFlags.EVALUATED:
      return Expression(self)
    if level == 1:
      return self.hold()
    return None

  def _evalf_leaf(self, level: int) -> Optional[Expression]:
    if level == 1:
      return Expression(self)
    if not self._operands:
      _check_level(level)
      return Expression(self)
    return None

  def _evalf_combine(self, operands: List[Expression]) -> Expression:
    return self._rebuild(operands)

  @abstractmethod
  def _rebuild(self, operands: List[Expression]) -> Expression:
    """Same kind and payload, new operands, canonicalized at the top level"""

  def map(self, fn: Callable) -> Expression:
    if not self._operands:
      return Expression(self)
    new_ops = [Expression(fn(Expression(h))) for h in self._operands]
    if all(n._node is o._node for n, o in zip(new_ops, self._operands)):
      return Expression(self)
    return self._rebuild(new_ops)

  def expand(self, options: int = 0) -> Expression:
    if self.flags & StatusFlags.EXPANDED and not options:
      return Expression(self)
    result = self._expand(options)
    result._node.flags |= StatusFlags.EXPANDED
    return result

  def _expand(self, options: int) -> Expression:
    return self.map(lambda h: h._node.expand(options))

  # ---- calculus --------------------------------------------------------

  def diff(self, symbol: 'Symbol', nth: int = 1) -> Expression:
    if nth < 0:
      raise ValueError("order of derivative must be non-negative")
    result = Expression(self)
    for _ in range(nth):
      result = result._node.derivative(symbol)
    return result

  def derivative(self, symbol: 'Symbol') -> Expression:
    raise AlgebraError(f"differentiation not supported by {type(self).__name__}")

  def series(self, relation: Expression, order: int, options: int = 0) -> Expression:
    from ..utils.sympy_utils import series_via_sympy
    return series_via_sympy(Expression(self), relation, order, options)

  # ---- substitution and matching --------------------------------------

  def subs(self, pairs: List[Tuple[Expression, Expression]], options: int = 0) -> Expression:
    if self._operands:
      new_ops = [h._node.subs(pairs, options) for h in self._operands]
      if all(n._node is o._node for n, o in zip(new_ops, self._operands)):
        result = Expression(self)
      else:
        result = self._rebuild(new_ops)
    else:
      result = Expression(self)
    return result._node._subs_one_level(pairs, options)

  def _subs_one_level(self, pairs, options: int) -> Expression:
    for pattern, replacement in pairs:
      if options & SubsOptions.NO_PATTERN:
        if self.is_equal(pattern._node):
          return Expression(replacement)
      else:
        bindings: Dict[Expression, Expression] = {}
        if self.match(pattern._node, bindings):
          if not bindings:
            return Expression(replacement)
          return replacement._node.subs(list(bindings.items()), options | SubsOptions.NO_PATTERN)
    return Expression(self)

  def match(self, pattern: 'Node', bindings: Dict[Expression, Expression]) -> bool:
    """Structural match; on success bindings receives the wildcard assignments"""
    if isinstance(pattern, Wildcard):
      return pattern._bind_to(self, bindings)
    if type(pattern) is not type(self) or self._payload_key() != pattern._payload_key():
      return False
    if len(self._operands) != len(pattern._operands):
      return False
    trial = dict(bindings)
    for a, b in zip(self._operands, pattern._operands):
      if not a._node.match(b._node, trial):
        return False
    bindings.update(trial)
    return True

  def has(self, pattern: 'Node') -> bool:
    pending = [self]
    while pending:
      node = pending.pop()
      if node.match(pattern, {}):
        return True
      pending.extend(h._node for h in node._operands)
    return False

  def find(self, pattern: 'Node') -> List[Expression]:
    found: Dict[Expression, None] = {}
    pending = [self]
    while pending:
      node = pending.pop()
      if node.match(pattern, {}):
        found.setdefault(Expression(node))
      pending.extend(reversed([h._node for h in node._operands]))
    return list(found)

  # ---- polynomial queries ---------------------------------------------

  def degree(self, s: 'Node') -> int:
    return 1 if self.is_equal(s) else 0

  def ldegree(self, s: 'Node') -> int:
    return 1 if self.is_equal(s) else 0

  def coeff(self, s: 'Node', n: int = 1) -> Expression:
    if self.is_equal(s):
      return make_numeric(1 if n == 1 else 0)
    return Expression(self) if n == 0 else make_numeric(0)

  def is_polynomial(self, var: 'Node') -> bool:
    return not self.has(var)

  def smod(self, xi: int) -> Expression:
    return Expression(self)

  def integer_content(self) -> Expression:
    return make_numeric(1)

  def max_coefficient(self) -> Expression:
    return make_numeric(1)

  # ---- classification -------------------------------------------------

  def info(self, flag: InfoFlags) -> bool:
    return False

  def return_type(self) -> ReturnType:
    return ReturnType.COMMUTATIVE

  def return_type_tinfo(self) -> str:
    return self.tag.name.lower()

  def get_free_indices(self) -> List[Expression]:
    return []

  # ---- bridges ---------------------------------------------------------

  @abstractmethod
  def to_sympy(self) -> sp.Basic:
    pass

  def evaluate(self, env: Dict[str, np.ndarray], n_samples: int) -> np.ndarray:
    raise TypeMismatchError('numeric-valued expression', type(self).__name__,
                            f"{type(self).__name__} cannot be evaluated numerically")

  # ---- printing --------------------------------------------------------

  precedence = PREC_ATOM

  def print(self, c, level: int = 0):
    c.emit(self, level)

  @abstractmethod
  def _print(self, c, level: int):
    pass

  def _print_child(self, c, handle: Expression, level: int):
    child = handle._node
    if child.print_precedence() <= level:
      c.stream.write('(')
      child.print(c, 0)
      c.stream.write(')')
    else:
      child.print(c, level)

  def print_precedence(self) -> int:
    return self.precedence


# ---- numeric helpers -------------------------------------------------------

def _normalize_number(value):
  if isinstance(value, bool):
    raise TypeError("bool is not a numeric value")
  if isinstance(value, numbers.Integral):
    return int(value)
  if isinstance(value, Fraction):
    return value.numerator if value.denominator == 1 else value
  if isinstance(value, numbers.Rational):
    return _normalize_number(Fraction(value.numerator, value.denominator))
  if isinstance(value, numbers.Real):
    return float(value)
  if isinstance(value, numbers.Complex):
    value = complex(value)
    return value.real if value.imag == 0 else value
  raise TypeError(f"not a numeric value: {value!r}")


def _is_exact(value) -> bool:
  return isinstance(value, (int, Fraction))


def _numeric_power(base, exponent):
  """Exact power when representable, None when it must stay symbolic"""
  if isinstance(exponent, int):
    if isinstance(base, int) and exponent < 0:
      if base == 0:
        raise ZeroDivisionError("division by zero")
      return Fraction(1, base ** -exponent)
    return base ** exponent
  if not _is_exact(base) or not _is_exact(exponent):
    if isinstance(base, complex) or isinstance(exponent, complex):
      return complex(base) ** complex(exponent)
    if base == 0 and exponent < 0:
      raise ZeroDivisionError("division by zero")
    return float(base) ** float(exponent)
  # exact base, fractional exponent: only perfect roots of non-negative values
  if base < 0:
    return None
  q = exponent.denominator
  base = Fraction(base)
  num_root, num_exact = sp.integer_nthroot(base.numerator, q)
  den_root, den_exact = sp.integer_nthroot(base.denominator, q)
  if not (num_exact and den_exact):
    return None
  return _numeric_power(Fraction(int(num_root), int(den_root)), exponent.numerator)


def make_numeric(value) -> Expression:
  """Canonical numeric handle, served from the flyweight table when possible"""
  from ..optimization.flyweights import get_flyweights
  value = _normalize_number(value)
  shared = get_flyweights().lookup(value)
  if shared is not None:
    return Expression(shared)
  node = Numeric(value)
  node.flags |= StatusFlags.EVALUATED
  return Expression(node)


class Numeric(Node):
  __slots__ = ('value',)

  tag = TypeTag.NUMERIC

  def __init__(self, value):
    super().__init__()
    self.value = _normalize_number(value)

  def _copy_payload(self, other):
    self.value = other.value

  def _payload_key(self):
    v = self.value
    if isinstance(v, complex):
      return (v.real, v.imag)
    return (v, 0)

  def _compute_hash(self) -> int:
    return hash((self.tag, self.value))

  def _rebuild(self, operands):
    return Expression(self)

  def _evalf_leaf(self, level):
    if isinstance(self.value, (float, complex)):
      return Expression(self)
    return make_numeric(float(self.value))

  def derivative(self, symbol):
    return make_numeric(0)

  def match(self, pattern, bindings):
    if isinstance(pattern, Wildcard):
      return pattern._bind_to(self, bindings)
    return isinstance(pattern, Numeric) and self.is_equal(pattern)

  def degree(self, s):
    return 0

  def ldegree(self, s):
    return 0

  def coeff(self, s, n=1):
    return Expression(self) if n == 0 else make_numeric(0)

  def is_polynomial(self, var):
    return True

  def smod(self, xi: int) -> Expression:
    if not isinstance(self.value, int):
      return Expression(self)
    r = self.value % xi
    if r > xi // 2:
      r -= xi
    return make_numeric(r)

  def integer_content(self):
    return make_numeric(abs(self.value))

  def max_coefficient(self):
    return make_numeric(abs(self.value))

  def info(self, flag):
    v = self.value
    real = not isinstance(v, complex)
    integer = isinstance(v, int)
    if flag in (InfoFlags.NUMERIC, InfoFlags.POLYNOMIAL):
      return True
    if flag == InfoFlags.REAL:
      return real
    if flag in (InfoFlags.RATIONAL, InfoFlags.RATIONAL_POLYNOMIAL):
      return _is_exact(v)
    if flag in (InfoFlags.INTEGER, InfoFlags.INTEGER_POLYNOMIAL):
      return integer
    if flag == InfoFlags.POSITIVE:
      return real and v > 0
    if flag == InfoFlags.NEGATIVE:
      return real and v < 0
    if flag == InfoFlags.NONNEGATIVE:
      return real and v >= 0
    if flag == InfoFlags.POSINT:
      return integer and v > 0
    if flag == InfoFlags.NONNEGINT:
      return integer and v >= 0
    if flag == InfoFlags.EVEN:
      return integer and v % 2 == 0
    if flag == InfoFlags.ODD:
      return integer and v % 2 == 1
    return False

  def to_sympy(self):
    v = self.value
    if isinstance(v, int):
      return sp.Integer(v)
    if isinstance(v, Fraction):
      return sp.Rational(v.numerator, v.denominator)
    if isinstance(v, complex):
      return sp.Float(v.real) + sp.I * sp.Float(v.imag)
    return sp.Float(v)

  def evaluate(self, env, n_samples):
    if isinstance(self.value, complex):
      raise ValueError("complex constants cannot be evaluated on real arrays")
    return evaluate_constant(n_samples, float(self.value))

  def print_precedence(self):
    v = self.value
    if isinstance(v, complex):
      return PREC_ADD
    if v < 0:
      return PREC_ADD
    if isinstance(v, Fraction):
      return PREC_MUL
    return PREC_ATOM

  def _print(self, c, level):
    v = self.value
    if isinstance(v, complex):
      c.stream.write(f"{v.real!r}+{v.imag!r}*I" if v.imag >= 0 else f"{v.real!r}{v.imag!r}*I")
    elif isinstance(v, Fraction):
      c.stream.write(f"{v.numerator}/{v.denominator}")
    else:
      c.stream.write(repr(v))


class Constant(Node):
  """Named real constant with a known floating value"""

  __slots__ = ('name',)

  tag = TypeTag.CONSTANT

  def __init__(self, name: str):
    super().__init__()
    if name not in CONSTANT_VALUES:
      raise ValueError(f"Unknown constant: {name}")
    self.name = name

  def _copy_payload(self, other):
    self.name = other.name

  def _payload_key(self):
    return (self.name,)

  def _rebuild(self, operands):
    return Expression(self)

  def _evalf_leaf(self, level):
    return make_numeric(CONSTANT_VALUES[self.name])

  def derivative(self, symbol):
    return make_numeric(0)

  def is_polynomial(self, var):
    return True

  def info(self, flag):
    return flag in (InfoFlags.REAL, InfoFlags.POSITIVE, InfoFlags.NONNEGATIVE, InfoFlags.POLYNOMIAL)

  def to_sympy(self):
    return {'Pi': sp.pi, 'Euler': sp.EulerGamma, 'Catalan': sp.Catalan}[self.name]

  def evaluate(self, env, n_samples):
    return evaluate_constant(n_samples, CONSTANT_VALUES[self.name])

  def _print(self, c, level):
    c.stream.write(self.name)


class Symbol(Node):
  __slots__ = ('name', 'commutative', 'algebra')

  tag = TypeTag.SYMBOL

  def __init__(self, name: str, commutative: bool = True, algebra: Optional[str] = None):
    super().__init__()
    if not name or not isinstance(name, str):
      raise ValueError("symbol name must be a non-empty string")
    self.name = name
    self.commutative = commutative
    self.algebra = algebra or ('symbol' if commutative else f"noncommutative:{name}")

  def _copy_payload(self, other):
    self.name = other.name
    self.commutative = other.commutative
    self.algebra = other.algebra

  def _payload_key(self):
    return (self.name, not self.commutative)

  def _rebuild(self, operands):
    return Expression(self)

  def derivative(self, symbol):
    return make_numeric(1 if self.is_equal(symbol) else 0)

  def is_polynomial(self, var):
    return True

  def info(self, flag):
    return flag in (InfoFlags.SYMBOL, InfoFlags.POLYNOMIAL,
                    InfoFlags.INTEGER_POLYNOMIAL, InfoFlags.RATIONAL_POLYNOMIAL)

  def return_type(self):
    return ReturnType.COMMUTATIVE if self.commutative else ReturnType.NONCOMMUTATIVE

  def return_type_tinfo(self):
    return self.algebra

  def to_sympy(self):
    return sp.Symbol(self.name, commutative=self.commutative)

  def evaluate(self, env, n_samples):
    try:
      return env[self.name]
    except KeyError:
      raise ValueError(f"no value bound for symbol {self.name}") from None

  def _print(self, c, level):
    c.stream.write(self.name)


class Wildcard(Node):
  """Pattern placeholder; matches any subexpression"""

  __slots__ = ('label',)

  tag = TypeTag.WILDCARD

  def __init__(self, label: int = 0):
    super().__init__()
    self.label = int(label)

  def _copy_payload(self, other):
    self.label = other.label

  def _payload_key(self):
    return (self.label,)

  def _rebuild(self, operands):
    return Expression(self)

  def _bind_to(self, node: Node, bindings) -> bool:
    key = Expression(self)
    bound = bindings.get(key)
    if bound is not None:
      return bound._node.is_equal(node)
    bindings[key] = Expression(node)
    return True

  def is_polynomial(self, var):
    return True

  def to_sympy(self):
    return sp.Wild(f"w{self.label}")

  def _print(self, c, level):
    c.stream.write(f"${self.label}")


# ---- sums and products ------------------------------------------------------

def ex_compare(a: Expression, b: Expression) -> int:
  return a._node.compare(b._node)

ex_sort_key = cmp_to_key(ex_compare)


def _flatten(operands: Iterable[Expression], kind: type) -> List[Expression]:
  flat = []
  pending = [Expression(o) for o in reversed(list(operands))]
  while pending:
    h = pending.pop()
    if type(h._node) is kind:
      pending.extend(reversed(h._node._operands))
    else:
      flat.append(h)
  return flat


def _raw(node: Node) -> Expression:
  node.flags |= StatusFlags.EVALUATED
  return Expression(node)


def _split_coeff(term: Expression):
  node = term._node
  if isinstance(node, Mul) and isinstance(node._operands[0]._node, Numeric):
    rest = node._operands[1:]
    return node._operands[0]._node.value, (rest[0] if len(rest) == 1 else _raw(Mul(rest)))
  return 1, term


def _term_coeff(term: Expression):
  node = term._node
  return node.value if isinstance(node, Numeric) else _split_coeff(term)[0]


def _with_coeff(c, rest: Expression) -> Expression:
  if c == 1 and _is_exact(c):
    return rest
  factors = list(rest._node._operands) if isinstance(rest._node, Mul) else [rest]
  return _raw(Mul([make_numeric(c)] + factors))


def make_add(operands: Iterable) -> Expression:
  """Canonical sum: flattened, like terms collected, sorted, constant last"""
  const = 0
  coeffs: Dict[Expression, object] = {}
  for term in _flatten(operands, Add):
    node = term._node
    if isinstance(node, Numeric):
      const = _normalize_number(const + node.value)
      continue
    c, rest = _split_coeff(term)
    coeffs[rest] = _normalize_number(coeffs.get(rest, 0) + c) if rest in coeffs else c
  terms = [_with_coeff(c, rest) for rest, c in coeffs.items() if c != 0]
  terms.sort(key=ex_sort_key)
  if not terms:
    return make_numeric(const)
  if const == 0 and len(terms) == 1:
    return Expression(terms[0])
  if const != 0:
    terms.append(make_numeric(const))
  return _raw(Add(terms))


def make_mul(operands: Iterable) -> Expression:
  """Canonical product: numeric coefficient first, commutative factors sorted"""
  coeff = 1
  powers: Dict[Expression, List] = {}
  noncommutative: List[Expression] = []
  pending = _flatten(operands, Mul)
  while pending:
    f = pending.pop(0)
    node = f._node
    if isinstance(node, Numeric):
      coeff = _normalize_number(coeff * node.value)
      continue
    if node.return_type() != ReturnType.COMMUTATIVE:
      noncommutative.append(f)
      continue
    if isinstance(node, Power):
      base, exponent = node._operands
    else:
      base, exponent = f, None
    powers.setdefault(base, []).append((exponent, f))
  if coeff == 0:
    return make_numeric(coeff)
  factors: List[Expression] = []
  unfolded: List[Expression] = []
  for base, entries in powers.items():
    if len(entries) == 1:
      factors.append(entries[0][1])
      continue
    exponent = make_add([e if e is not None else make_numeric(1) for e, _ in entries])
    p = make_power(base, exponent)
    pnode = p._node
    if isinstance(pnode, Numeric):
      coeff = _normalize_number(coeff * pnode.value)
    elif isinstance(pnode, Mul):
      unfolded.append(p)
    else:
      factors.append(p)
  if unfolded:
    # (x*y)^(1/2)*(x*y)^(1/2) combines into a product that needs another pass
    return make_mul([make_numeric(coeff)] + factors + unfolded + noncommutative)
  if coeff == 0:
    return make_numeric(coeff)
  factors.sort(key=ex_sort_key)
  factors.extend(noncommutative)
  if not factors:
    return make_numeric(coeff)
  if coeff == 1 and _is_exact(coeff) and len(factors) == 1:
    return Expression(factors[0])
  if len(factors) == 1 and isinstance(factors[0]._node, Add) and not noncommutative:
    # numeric coefficient times a single sum is distributed
    return make_add([make_mul([make_numeric(coeff), t]) for t in factors[0]._node._operands])
  if coeff != 1 or not _is_exact(coeff):
    factors.insert(0, make_numeric(coeff))
  return _raw(Mul(factors))


class ExpairSeq(Node):
  """Common base of sums and products"""

  __slots__ = ()

  def _rebuild(self, operands):
    return self._combine(operands)

  @staticmethod
  @abstractmethod
  def _combine(operands) -> Expression:
    pass

  def is_polynomial(self, var):
    return all(h._node.is_polynomial(var) for h in self._operands)

  def info(self, flag):
    if flag in (InfoFlags.POLYNOMIAL, InfoFlags.INTEGER_POLYNOMIAL, InfoFlags.RATIONAL_POLYNOMIAL):
      return all(h._node.info(flag) for h in self._operands)
    return False

  def _is_ordered(self) -> bool:
    return False

  def match(self, pattern, bindings):
    if isinstance(pattern, Wildcard):
      return pattern._bind_to(self, bindings)
    if type(pattern) is not type(self):
      return False
    if self._is_ordered() or pattern._is_ordered():
      return super().match(pattern, bindings)
    patterns = sorted(pattern._operands, key=lambda h: isinstance(h._node, Wildcard))
    trial = dict(bindings)
    if self._match_unordered(list(self._operands), patterns, trial):
      bindings.update(trial)
      return True
    return False

  def _match_unordered(self, targets, patterns, bindings) -> bool:
    if not patterns:
      return not targets
    head = patterns[0]
    if len(patterns) == 1 and isinstance(head._node, Wildcard) and len(targets) > 1:
      # a trailing wildcard absorbs everything that is left
      return head._node._bind_to(self._combine(targets)._node, bindings)
    for i, target in enumerate(targets):
      trial = dict(bindings)
      if target._node.match(head._node, trial) and \
          self._match_unordered(targets[:i] + targets[i + 1:], patterns[1:], trial):
        bindings.clear()
        bindings.update(trial)
        return True
    return False


class Add(ExpairSeq):
  __slots__ = ()

  tag = TypeTag.ADD
  precedence = PREC_ADD

  _combine = staticmethod(make_add)

  def derivative(self, symbol):
    return make_add([h._node.derivative(symbol) for h in self._operands])

  def _expand(self, options):
    return make_add([h._node.expand(options) for h in self._operands])

  def degree(self, s):
    if self.is_equal(s):
      return 1
    return max(h._node.degree(s) for h in self._operands)

  def ldegree(self, s):
    if self.is_equal(s):
      return 1
    return min(h._node.ldegree(s) for h in self._operands)

  def coeff(self, s, n=1):
    if self.is_equal(s):
      return super().coeff(s, n)
    return make_add([h._node.coeff(s, n) for h in self._operands])

  def smod(self, xi):
    return make_add([h._node.smod(xi) for h in self._operands])

  def integer_content(self):
    """gcd of the numerators over lcm of the denominators of all term coefficients"""
    numerator, denominator = 0, 1
    for h in self._operands:
      c = _term_coeff(h)
      c = Fraction(c) if _is_exact(c) else Fraction(1)
      numerator = math.gcd(numerator, c.numerator)
      denominator = math.lcm(denominator, c.denominator)
    return make_numeric(Fraction(numerator, denominator))

  def max_coefficient(self):
    return make_numeric(max(abs(_term_coeff(h)) for h in self._operands))

  def return_type(self):
    return self._operands[0]._node.return_type()

  def return_type_tinfo(self):
    return self._operands[0]._node.return_type_tinfo()

  def get_free_indices(self):
    first = self._operands[0]._node.get_free_indices()
    expected = set(first)
    for h in self._operands[1:]:
      if set(h._node.get_free_indices()) != expected:
        raise InconsistencyError("inconsistent free indices in sum")
    return first

  def to_sympy(self):
    return sp.Add(*[h._node.to_sympy() for h in self._operands], evaluate=False)

  def evaluate(self, env, n_samples):
    result = self._operands[0]._node.evaluate(env, n_samples)
    for h in self._operands[1:]:
      result = result + h._node.evaluate(env, n_samples)
    return result

  def _print(self, c, level):
    for i, h in enumerate(self._operands):
      if i:
        node = h._node
        negative = (isinstance(node, Numeric) and not isinstance(node.value, complex) and node.value < 0) or \
            (isinstance(node, Mul) and isinstance(node._operands[0]._node, Numeric)
             and not isinstance(node._operands[0]._node.value, complex)
             and node._operands[0]._node.value < 0)
        if not negative:
          c.stream.write('+')
      node = h._node
      if isinstance(node, Numeric):
        node.print(c, 0)
      else:
        self._print_child(c, h, PREC_ADD)


class Mul(ExpairSeq):
  __slots__ = ()

  tag = TypeTag.MUL
  precedence = PREC_MUL

  _combine = staticmethod(make_mul)

  def _is_ordered(self):
    return any(h._node.return_type() != ReturnType.COMMUTATIVE for h in self._operands)

  def derivative(self, symbol):
    terms = []
    for i, h in enumerate(self._operands):
      d = h._node.derivative(symbol)
      if d._node.info(InfoFlags.NUMERIC) and d.is_zero():
        continue
      factors = [Expression(o) for o in self._operands]
      factors[i] = d
      terms.append(make_mul(factors))
    return make_add(terms)

  def _expand(self, options):
    return _distribute([h._node.expand(options) for h in self._operands])

  def degree(self, s):
    if self.is_equal(s):
      return 1
    return sum(h._node.degree(s) for h in self._operands)

  def ldegree(self, s):
    if self.is_equal(s):
      return 1
    return sum(h._node.ldegree(s) for h in self._operands)

  def coeff(self, s, n=1):
    if self.is_equal(s):
      return super().coeff(s, n)
    if n == 0:
      return make_mul([h._node.coeff(s, 0) for h in self._operands])
    found = False
    factors = []
    for h in self._operands:
      c = h._node.coeff(s, n)
      if not c.is_zero():
        factors.append(c)
        found = True
      else:
        factors.append(Expression(h))
    return make_mul(factors) if found else make_numeric(0)

  def smod(self, xi):
    head = self._operands[0]._node
    if not isinstance(head, Numeric):
      return Expression(self)
    return make_mul([head.smod(xi)] + list(self._operands[1:]))

  def integer_content(self):
    head = self._operands[0]._node
    return make_numeric(abs(head.value) if isinstance(head, Numeric) else 1)

  max_coefficient = integer_content

  def return_type(self):
    kinds = {h._node.return_type_tinfo() for h in self._operands
             if h._node.return_type() != ReturnType.COMMUTATIVE}
    if not kinds:
      return ReturnType.COMMUTATIVE
    return ReturnType.NONCOMMUTATIVE if len(kinds) == 1 else ReturnType.NONCOMMUTATIVE_COMPOSITE

  def return_type_tinfo(self):
    for h in self._operands:
      if h._node.return_type() != ReturnType.COMMUTATIVE:
        return h._node.return_type_tinfo()
    return super().return_type_tinfo()

  def get_free_indices(self):
    counts: Dict[Expression, int] = {}
    for h in self._operands:
      for index in h._node.get_free_indices():
        counts[index] = counts.get(index, 0) + 1
    for index, count in counts.items():
      if count > 2:
        raise InconsistencyError(f"index {index} occurs more than twice in product")
    return [index for index, count in counts.items() if count == 1]

  def _subs_one_level(self, pairs, options):
    if options & SubsOptions.ALGEBRAIC:
      for pattern, replacement in pairs:
        result = self._algebraic_subs(pattern, replacement)
        if result is not None:
          return result
    return super()._subs_one_level(pairs, options)

  def _algebraic_subs(self, pattern: Expression, replacement: Expression) -> Optional[Expression]:
    pnode = pattern._node
    if not isinstance(pnode, Mul) or self._is_ordered():
      return None
    own = _integer_powers(self._operands, allow_coeff=True)
    wanted = _integer_powers(pnode._operands)
    if own is None or wanted is None:
      return None
    k = None
    for base, e in wanted.items():
      have = own.get(base)
      if have is None or have * e <= 0 or abs(have) < abs(e):
        return None
      k = abs(have) // abs(e) if k is None else min(k, abs(have) // abs(e))
    if not k:
      return None
    remaining = []
    for h in self._operands:
      node = h._node
      base = node._operands[0] if isinstance(node, Power) else h
      if base in wanted:
        remaining.append(make_power(base, make_numeric(own[base] - k * wanted[base])))
      else:
        remaining.append(Expression(h))
    return make_mul(remaining + [make_power(replacement, make_numeric(k))])

  def to_sympy(self):
    return sp.Mul(*[h._node.to_sympy() for h in self._operands], evaluate=False)

  def evaluate(self, env, n_samples):
    result = self._operands[0]._node.evaluate(env, n_samples)
    for h in self._operands[1:]:
      result = result * h._node.evaluate(env, n_samples)
    return result

  def _print(self, c, level):
    operands = self._operands
    head = operands[0]._node
    if isinstance(head, Numeric) and not isinstance(head.value, complex):
      if head.value == -1 and _is_exact(head.value):
        c.stream.write('-')
        operands = operands[1:]
      elif not isinstance(head.value, Fraction):
        head.print(c, 0)
        c.stream.write('*')
        operands = operands[1:]
    for i, h in enumerate(operands):
      if i:
        c.stream.write('*')
      self._print_child(c, h, PREC_MUL)


def _distribute(factors: List[Expression]) -> Expression:
  """Multiply out already expanded factors, keeping their order"""
  terms = [make_numeric(1)]
  for factor in factors:
    if isinstance(factor._node, Add):
      terms = [make_mul([t, g]) for t in terms for g in factor._node._operands]
    else:
      terms = [make_mul([t, factor]) for t in terms]
  return make_add(terms)


def _integer_powers(operands, allow_coeff: bool = False) -> Optional[Dict[Expression, int]]:
  powers = {}
  for h in operands:
    node = h._node
    if isinstance(node, Numeric):
      if not allow_coeff and node.value != 1:
        return None
      continue
    if isinstance(node, Power):
      e = node._operands[1]._node
      if not (isinstance(e, Numeric) and isinstance(e.value, int)):
        return None
      powers[node._operands[0]] = e.value
    else:
      powers[h] = 1
  return powers


# ---- powers -------------------------------------------------------------------

def make_power(base, exponent) -> Expression:
  base, exponent = Expression(base), Expression(exponent)
  b, e = base._node, exponent._node
  if isinstance(e, Numeric) and _is_exact(e.value):
    if e.value == 0:
      return make_numeric(1)
    if e.value == 1:
      return base
  if isinstance(b, Numeric):
    if b.value == 1 and _is_exact(b.value):
      return make_numeric(1)
    if isinstance(e, Numeric):
      value = _numeric_power(b.value, e.value)
      if value is not None:
        return make_numeric(value)
  if isinstance(e, Numeric) and isinstance(e.value, int):
    if isinstance(b, Power):
      return make_power(b._operands[0], make_mul([b._operands[1], exponent]))
    if isinstance(b, Mul) and b.return_type() == ReturnType.COMMUTATIVE:
      return make_mul([make_power(f, exponent) for f in b._operands])
  return _raw(Power(base, exponent))


class Power(Node):
  __slots__ = ()

  tag = TypeTag.POWER
  precedence = PREC_POWER

  def __init__(self, base, exponent):
    super().__init__((base, exponent))

  @property
  def base(self) -> Expression:
    return Expression(self._operands[0])

  @property
  def exponent(self) -> Expression:
    return Expression(self._operands[1])

  def _rebuild(self, operands):
    return make_power(operands[0], operands[1])

  def _int_exponent(self) -> Optional[int]:
    e = self._operands[1]._node
    if isinstance(e, Numeric) and isinstance(e.value, int):
      return e.value
    return None

  def derivative(self, symbol):
    base, exponent = self._operands
    db = base._node.derivative(symbol)
    if not exponent._node.has(symbol):
      # e * b^(e-1) * b'
      return make_mul([exponent, make_power(base, make_add([exponent, make_numeric(-1)])), db])
    de = exponent._node.derivative(symbol)
    log_b = make_function('log', base)
    inner = make_add([make_mul([de, log_b]),
                      make_mul([exponent, db, make_power(base, make_numeric(-1))])])
    return make_mul([Expression(self), inner])

  def _expand(self, options):
    base = self._operands[0]._node.expand(options)
    exponent = self._operands[1]._node.expand(options)
    n = exponent._node.value if isinstance(exponent._node, Numeric) else None
    if isinstance(n, int) and n > 0 and isinstance(base._node, Add):
      return _distribute([base] * n)
    result = make_power(base, exponent)
    if isinstance(result._node, (Mul, Add)):
      return result._node.expand(options)
    return result

  def degree(self, s):
    if self.is_equal(s):
      return 1
    n = self._int_exponent()
    base = self._operands[0]._node
    if n is not None:
      if base.is_equal(s):
        return n
      if n >= 0 and base.has(s):
        return base.degree(s) * n
    return 0

  def ldegree(self, s):
    if self.is_equal(s):
      return 1
    n = self._int_exponent()
    base = self._operands[0]._node
    if n is not None:
      if base.is_equal(s):
        return n
      if n >= 0 and base.has(s):
        return base.ldegree(s) * n
    return 0

  def coeff(self, s, n=1):
    if self.is_equal(s):
      return super().coeff(s, n)
    base = self._operands[0]._node
    if not base.is_equal(s):
      return Expression(self) if n == 0 else make_numeric(0)
    e = self._int_exponent()
    if e is not None:
      return make_numeric(1 if e == n else 0)
    return Expression(self) if n == 0 else make_numeric(0)

  def is_polynomial(self, var):
    base, exponent = self._operands
    if exponent._node.has(var):
      return False
    if not exponent._node.info(InfoFlags.NONNEGINT):
      return not base._node.has(var)
    return base._node.is_polynomial(var)

  def info(self, flag):
    if flag in (InfoFlags.POLYNOMIAL, InfoFlags.INTEGER_POLYNOMIAL, InfoFlags.RATIONAL_POLYNOMIAL):
      return self._operands[1]._node.info(InfoFlags.NONNEGINT) and self._operands[0]._node.info(flag)
    return False

  def return_type(self):
    return self._operands[0]._node.return_type()

  def return_type_tinfo(self):
    return self._operands[0]._node.return_type_tinfo()

  def _subs_one_level(self, pairs, options):
    if options & SubsOptions.ALGEBRAIC:
      for pattern, replacement in pairs:
        result = self._algebraic_subs(pattern, replacement)
        if result is not None:
          return result
    return super()._subs_one_level(pairs, options)

  def _algebraic_subs(self, pattern: Expression, replacement: Expression) -> Optional[Expression]:
    pnode = pattern._node
    if not isinstance(pnode, Power) or not pnode._operands[0]._node.is_equal(self._operands[0]._node):
      return None
    have, want = self._int_exponent(), pnode._int_exponent()
    if have is None or want is None or have * want <= 0 or abs(have) < abs(want):
      return None
    q, r = divmod(abs(have), abs(want))
    sign = 1 if have > 0 else -1
    return make_mul([make_power(replacement, make_numeric(q)),
                     make_power(self._operands[0], make_numeric(sign * r))])

  def to_sympy(self):
    return sp.Pow(self._operands[0]._node.to_sympy(), self._operands[1]._node.to_sympy(), evaluate=False)

  def evaluate(self, env, n_samples):
    base = np.asarray(self._operands[0]._node.evaluate(env, n_samples), dtype=np.float64)
    exponent = np.asarray(self._operands[1]._node.evaluate(env, n_samples), dtype=np.float64)
    return evaluate_power(base, exponent)

  def _print(self, c, level):
    self._print_child(c, self._operands[0], PREC_POWER)
    c.stream.write('^')
    self._print_child(c, self._operands[1], PREC_POWER)


# ---- function applications -------------------------------------------------

@dataclass
class FunctionSpec:
  name: str
  nargs: int = 1
  eval_rule: Optional[Callable[[List[Expression]], Optional[Expression]]] = None
  derivative: Optional[Callable[[List[Expression], int], Expression]] = None
  sympy_name: Optional[str] = None


FUNCTION_REGISTRY: Dict[str, FunctionSpec] = {}


def register_function(spec: FunctionSpec) -> FunctionSpec:
  """Add or replace a named function kind"""
  FUNCTION_REGISTRY[spec.name] = spec
  return spec


def make_function(name: str, *args) -> Expression:
  spec = FUNCTION_REGISTRY.get(name)
  if spec is None:
    raise ValueError(f"Unknown function: {name}")
  if len(args) != spec.nargs:
    raise ValueError(f"{name} expects {spec.nargs} argument(s), got {len(args)}")
  args = [Expression(a) for a in args]
  if spec.eval_rule is not None:
    result = spec.eval_rule(args)
    if result is not None:
      return result
  return _raw(Function(name, args))


class Function(Node):
  __slots__ = ('name',)

  tag = TypeTag.FUNCTION

  def __init__(self, name: str, args: Iterable = ()):
    super().__init__(args)
    self.name = name

  def _copy_payload(self, other):
    self.name = other.name

  def _payload_key(self):
    return (self.name,)

  @property
  def spec(self) -> FunctionSpec:
    return FUNCTION_REGISTRY[self.name]

  def _rebuild(self, operands):
    return make_function(self.name, *operands)

  def _evalf_combine(self, args):
    if len(args) == 1 and self.name in FUNCTION_OP_MAP and isinstance(args[0]._node, Numeric):
      return make_numeric(evaluate_function_scalar(self.name, args[0]._node.value))
    return make_function(self.name, *args)

  def derivative(self, symbol):
    spec = self.spec
    terms = []
    for i, h in enumerate(self._operands):
      d = h._node.derivative(symbol)
      if d.is_zero():
        continue
      if spec.derivative is None:
        raise AlgebraError(f"no derivative defined for {self.name}")
      terms.append(make_mul([spec.derivative([Expression(o) for o in self._operands], i), d]))
    return make_add(terms)

  def _expand(self, options):
    if options & ExpandOptions.EXPAND_FUNCTION_ARGS:
      return super()._expand(options)
    return Expression(self)

  def to_sympy(self):
    args = [h._node.to_sympy() for h in self._operands]
    return getattr(sp, self.spec.sympy_name or self.name)(*args)

  def evaluate(self, env, n_samples):
    args = [np.asarray(h._node.evaluate(env, n_samples), dtype=np.float64) for h in self._operands]
    op_type = FUNCTION_OP_MAP.get(self.name)
    if op_type is not None and len(args) == 1:
      return evaluate_function_fast(args[0], int(op_type))
    raise TypeMismatchError('function with a numeric kernel', self.name)

  def _print(self, c, level):
    c.stream.write(self.name)
    c.stream.write('(')
    for i, h in enumerate(self._operands):
      if i:
        c.stream.write(',')
      h._node.print(c, 0)
    c.stream.write(')')


def _numeric_arg(args) -> Optional[Numeric]:
  node = args[0]._node
  return node if isinstance(node, Numeric) else None


def _special_values(name: str, table: Dict[int, int]):
  def rule(args):
    num = _numeric_arg(args)
    if num is None:
      return None
    if isinstance(num.value, (float, complex)):
      return make_numeric(evaluate_function_scalar(name, num.value))
    if num.value in table and _is_exact(num.value):
      return make_numeric(table[num.value])
    return None
  return rule


def _exp_rule(args):
  node = args[0]._node
  if isinstance(node, Function) and node.name == 'log':
    return Expression(node._operands[0])
  return _special_values('exp', {0: 1})(args)


def _abs_rule(args):
  num = _numeric_arg(args)
  if num is not None:
    return make_numeric(abs(num.value))
  return None


def _one_minus_square(x):
  return make_add([make_numeric(1), make_mul([make_numeric(-1), make_power(x, make_numeric(2))])])


def _register_builtin_functions():
  f = make_function
  n = make_numeric
  register_function(FunctionSpec('sin', eval_rule=_special_values('sin', {0: 0}),
                                 derivative=lambda a, i: f('cos', a[0])))
  register_function(FunctionSpec('cos', eval_rule=_special_values('cos', {0: 1}),
                                 derivative=lambda a, i: make_mul([n(-1), f('sin', a[0])])))
  register_function(FunctionSpec('tan', eval_rule=_special_values('tan', {0: 0}),
                                 derivative=lambda a, i: make_add([n(1), make_power(f('tan', a[0]), n(2))])))
  register_function(FunctionSpec('exp', eval_rule=_exp_rule,
                                 derivative=lambda a, i: f('exp', a[0])))
  register_function(FunctionSpec('log', eval_rule=_special_values('log', {1: 0}),
                                 derivative=lambda a, i: make_power(a[0], n(-1))))
  register_function(FunctionSpec('abs', eval_rule=_abs_rule, sympy_name='Abs',
                                 derivative=lambda a, i: make_mul([a[0], make_power(f('abs', a[0]), n(-1))])))
  register_function(FunctionSpec('sinh', eval_rule=_special_values('sinh', {0: 0}),
                                 derivative=lambda a, i: f('cosh', a[0])))
  register_function(FunctionSpec('cosh', eval_rule=_special_values('cosh', {0: 1}),
                                 derivative=lambda a, i: f('sinh', a[0])))
  register_function(FunctionSpec('tanh', eval_rule=_special_values('tanh', {0: 0}),
                                 derivative=lambda a, i: _one_minus_square(f('tanh', a[0]))))
  register_function(FunctionSpec('asin', eval_rule=_special_values('asin', {0: 0}),
                                 derivative=lambda a, i: make_power(_one_minus_square(a[0]), n(Fraction(-1, 2)))))
  register_function(FunctionSpec('acos', eval_rule=_special_values('acos', {1: 0}),
                                 derivative=lambda a, i: make_mul(
                                   [n(-1), make_power(_one_minus_square(a[0]), n(Fraction(-1, 2)))])))
  register_function(FunctionSpec('atan', eval_rule=_special_values('atan', {0: 0}),
                                 derivative=lambda a, i: make_power(
                                   make_add([n(1), make_power(a[0], n(2))]), n(-1))))
  # remainder term of a truncated series
  register_function(FunctionSpec('Order', sympy_name='Order'))


_register_builtin_functions()


# ---- relations, lists and indexed objects -----------------------------------

RELATIONAL_OPERATORS = ('==', '!=', '<', '<=', '>', '>=')

_SYMPY_RELATIONS = {'==': sp.Eq, '!=': sp.Ne, '<': sp.Lt, '<=': sp.Le, '>': sp.Gt, '>=': sp.Ge}


def make_relational(lhs, rhs, operator: str = '==') -> Expression:
  return _raw(Relational(lhs, rhs, operator))


class Relational(Node):
  __slots__ = ('operator',)

  tag = TypeTag.RELATIONAL
  precedence = PREC_RELATIONAL

  def __init__(self, lhs, rhs, operator: str = '=='):
    if operator not in RELATIONAL_OPERATORS:
      raise ValueError(f"Unknown relational operator: {operator}")
    super().__init__((lhs, rhs))
    self.operator = operator

  def _copy_payload(self, other):
    self.operator = other.operator

  def _payload_key(self):
    return (RELATIONAL_OPERATORS.index(self.operator),)

  def _rebuild(self, operands):
    return make_relational(operands[0], operands[1], self.operator)

  def info(self, flag):
    if flag == InfoFlags.RELATION:
      return True
    if flag == InfoFlags.RELATION_EQUAL:
      return self.operator == '=='
    return False

  def to_sympy(self):
    return _SYMPY_RELATIONS[self.operator](self._operands[0]._node.to_sympy(),
                                           self._operands[1]._node.to_sympy(), evaluate=False)

  def _print(self, c, level):
    self._print_child(c, self._operands[0], PREC_RELATIONAL)
    c.stream.write(self.operator)
    self._print_child(c, self._operands[1], PREC_RELATIONAL)


class Container(Node):
  """Ordered sequence node whose operands are its elements"""

  __slots__ = ()

  def _rebuild(self, operands):
    return _raw(type(self)(operands))

  def derivative(self, symbol):
    return self._rebuild([h._node.derivative(symbol) for h in self._operands])

  def _append(self, value):
    self._operands.append(Expression(value))
    self._invalidate()

  def _prepend(self, value):
    self._operands.insert(0, Expression(value))
    self._invalidate()

  def _remove(self, position: int):
    if not self._operands:
      raise OperandIndexError(position, 0)
    self._operands.pop(position)
    self._invalidate()


class Lst(Container):
  __slots__ = ()

  tag = TypeTag.LST

  def info(self, flag):
    return flag == InfoFlags.LIST

  def to_sympy(self):
    return sp.Tuple(*[h._node.to_sympy() for h in self._operands])

  def _print(self, c, level):
    c.stream.write('{')
    for i, h in enumerate(self._operands):
      if i:
        c.stream.write(',')
      h._node.print(c, 0)
    c.stream.write('}')


def make_lst(*items) -> Expression:
  return _raw(Lst(items))


class Indexed(Node):
  """Indexed object base.i.j; an index repeated inside one object is contracted"""

  __slots__ = ()

  tag = TypeTag.INDEXED

  def __init__(self, base, *indices):
    super().__init__((base,) + tuple(indices))

  def _rebuild(self, operands):
    return _raw(Indexed(*operands))

  def derivative(self, symbol):
    if self.is_equal(symbol):
      return make_numeric(1)
    if self.has(symbol):
      raise AlgebraError("cannot differentiate an indexed object with respect to its own parts")
    return make_numeric(0)

  def is_polynomial(self, var):
    return not self.has(var) or self.is_equal(var)

  def info(self, flag):
    return flag == InfoFlags.INDEXED

  def return_type(self):
    return self._operands[0]._node.return_type()

  def get_free_indices(self):
    counts: Dict[Expression, int] = {}
    for h in self._operands[1:]:
      counts[h] = counts.get(h, 0) + 1
    return [Expression(index) for index, count in counts.items() if count == 1]

  def to_sympy(self):
    base = sp.IndexedBase(str(self._operands[0]))
    return base[tuple(h._node.to_sympy() for h in self._operands[1:])]

  def _print(self, c, level):
    self._print_child(c, self._operands[0], PREC_POWER)
    for h in self._operands[1:]:
      c.stream.write('.')
      self._print_child(c, h, PREC_POWER)


def make_indexed(base, *indices) -> Expression:
  return _raw(Indexed(base, *indices))
