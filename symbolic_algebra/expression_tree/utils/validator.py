import numpy as np
from typing import Dict, Optional

from ...errors import AlgebraError, InconsistencyError
from ..core.node import Node, Numeric, Relational, Container, Power, make_add, make_mul, make_power
from ..core.operators import StatusFlags
from ..expression import Expression
from .tree_utils import get_all_nodes


class ExpressionValidator:

  @staticmethod
  def is_valid_expression(e: Expression, bindings: Optional[Dict] = None) -> bool:
    """Structural sanity check, plus a finite numeric evaluation when bindings are given"""
    if not ExpressionValidator._is_structurally_valid(e._node):
      return False

    if bindings is not None:
      return ExpressionValidator._test_evaluation(e, bindings)

    return True

  @staticmethod
  def _is_structurally_valid(root: Node) -> bool:
    for node in get_all_nodes(root):
      if node.flags & StatusFlags.RELEASED:
        return False
      if any(not h._bound or h._node.refcount < 1 for h in node._operands):
        return False

      # a cached hash must still describe the current operands
      if node.flags & StatusFlags.HASH_CALCULATED and node._hash_cache != node._compute_hash():
        return False

      if isinstance(node, Numeric) and isinstance(node.value, (float, complex)) \
          and not np.isfinite(node.value):
        return False

      # relations may only appear at the top or as list elements
      if not isinstance(node, Container):
        if any(isinstance(h._node, Relational) for h in node._operands):
          return False

      if isinstance(node, Power):
        base, exponent = node._operands[0]._node, node._operands[1]._node
        if isinstance(base, Numeric) and base.value == 0 and isinstance(exponent, Numeric) \
            and not isinstance(exponent.value, complex) and exponent.value < 0:
          return False

    return True

  @staticmethod
  def _test_evaluation(e: Expression, bindings: Dict) -> bool:
    try:
      with np.errstate(all='ignore'):
        values = e.evaluate(bindings)
    except (AlgebraError, ArithmeticError, ValueError, TypeError):
      return False
    return bool(np.all(np.isfinite(values)))

  @staticmethod
  def check_is_polynomial(e: Expression, var: Expression):
    """Raise InconsistencyError unless e is a polynomial in var whose coefficients rebuild it"""
    if not e.is_polynomial(var):
      raise InconsistencyError(f"{e} is not a polynomial in {var}")

    expanded = e.expand()
    terms = [make_mul([expanded.coeff(var, n), make_power(var, n)])
             for n in range(expanded.ldegree(var), expanded.degree(var) + 1)]
    rebuilt = make_add(terms).expand()
    if not rebuilt.is_equal(expanded):
      raise InconsistencyError(f"coefficients of {e} in {var} do not reproduce it: {rebuilt}")
