import cmath
import math
import numpy as np
import numba
from enum import IntEnum, IntFlag


class TypeTag(IntEnum):
  # Declaration order is the canonical ordering between node kinds
  BASIC = 0
  NUMERIC = 1
  CONSTANT = 2
  SYMBOL = 3
  WILDCARD = 4
  INDEXED = 5
  FUNCTION = 6
  POWER = 7
  MUL = 8
  ADD = 9
  RELATIONAL = 10
  LST = 11

class StatusFlags(IntFlag):
  NONE = 0
  DYNALLOCATED = 1
  EVALUATED = 2
  EXPANDED = 4
  HASH_CALCULATED = 8
  FLYWEIGHT = 16
  RELEASED = 32

class InfoFlags(IntEnum):
  NUMERIC = 0
  REAL = 1
  RATIONAL = 2
  INTEGER = 3
  POSITIVE = 4
  NEGATIVE = 5
  NONNEGATIVE = 6
  POSINT = 7
  NONNEGINT = 8
  EVEN = 9
  ODD = 10
  SYMBOL = 11
  POLYNOMIAL = 12
  INTEGER_POLYNOMIAL = 13
  RATIONAL_POLYNOMIAL = 14
  LIST = 15
  RELATION = 16
  RELATION_EQUAL = 17
  INDEXED = 18

class ReturnType(IntEnum):
  COMMUTATIVE = 0
  NONCOMMUTATIVE = 1
  NONCOMMUTATIVE_COMPOSITE = 2

class SubsOptions(IntFlag):
  NONE = 0
  NO_PATTERN = 1   # compare syntactically, wildcards are ordinary leaves
  ALGEBRAIC = 2    # x^2 -> y also rewrites x^5 as y^2*x

class SeriesOptions(IntFlag):
  NONE = 0
  REMOVE_ORDER = 1  # drop the Order(...) remainder term
  FROM_BELOW = 2    # expand with the point approached from below

class ExpandOptions(IntFlag):
  NONE = 0
  EXPAND_FUNCTION_ARGS = 1

class OpType(IntEnum):
  SIN = 0
  COS = 1
  TAN = 2
  EXP = 3
  LOG = 4
  ABS = 5
  SINH = 6
  COSH = 7
  TANH = 8
  ASIN = 9
  ACOS = 10
  ATAN = 11

# Function name -> kernel op code
FUNCTION_OP_MAP = {
    'sin': OpType.SIN, 'cos': OpType.COS, 'tan': OpType.TAN,
    'exp': OpType.EXP, 'log': OpType.LOG, 'abs': OpType.ABS,
    'sinh': OpType.SINH, 'cosh': OpType.COSH, 'tanh': OpType.TANH,
    'asin': OpType.ASIN, 'acos': OpType.ACOS, 'atan': OpType.ATAN
}

# Numeric values of the named constants
CONSTANT_VALUES = {
    'Pi': math.pi,
    'Euler': 0.57721566490153286061,
    'Catalan': 0.91596559417721901505,
}

_REAL_FUNCTIONS = {
    'sin': math.sin, 'cos': math.cos, 'tan': math.tan,
    'exp': math.exp, 'log': math.log, 'abs': abs,
    'sinh': math.sinh, 'cosh': math.cosh, 'tanh': math.tanh,
    'asin': math.asin, 'acos': math.acos, 'atan': math.atan
}

_COMPLEX_FUNCTIONS = {
    'sin': cmath.sin, 'cos': cmath.cos, 'tan': cmath.tan,
    'exp': cmath.exp, 'log': cmath.log, 'abs': abs,
    'sinh': cmath.sinh, 'cosh': cmath.cosh, 'tanh': cmath.tanh,
    'asin': cmath.asin, 'acos': cmath.acos, 'atan': cmath.atan
}


def evaluate_function_scalar(name: str, value):
  """Floating evaluation of a named function at one point"""
  if isinstance(value, complex):
    return _COMPLEX_FUNCTIONS[name](value)
  try:
    return _REAL_FUNCTIONS[name](value)
  except ValueError:
    # outside the real domain, e.g. log(-1.0) or asin(2.0)
    return _COMPLEX_FUNCTIONS[name](complex(value))


@numba.njit(cache=True, inline='always')
def evaluate_constant(n_samples, value):
  return np.full(n_samples, value, dtype=np.float64)

@numba.njit(cache=True)
def evaluate_power(base_val, exponent_val):
  return np.power(base_val, exponent_val)

@numba.njit(cache=True)
def evaluate_function_fast(operand_val, op_type):
  if op_type == OpType.SIN:
    return np.sin(operand_val)
  elif op_type == OpType.COS:
    return np.cos(operand_val)
  elif op_type == OpType.TAN:
    return np.tan(operand_val)
  elif op_type == OpType.EXP:
    return np.exp(operand_val)
  elif op_type == OpType.LOG:
    return np.log(operand_val)
  elif op_type == OpType.ABS:
    return np.abs(operand_val)
  elif op_type == OpType.SINH:
    return np.sinh(operand_val)
  elif op_type == OpType.COSH:
    return np.cosh(operand_val)
  elif op_type == OpType.TANH:
    return np.tanh(operand_val)
  elif op_type == OpType.ASIN:
    return np.arcsin(operand_val)
  elif op_type == OpType.ACOS:
    return np.arccos(operand_val)
  elif op_type == OpType.ATAN:
    return np.arctan(operand_val)
  return np.full_like(operand_val, np.nan)
