from fractions import Fraction
from typing import Dict, TYPE_CHECKING, Optional
import threading

from ...config import get_settings
from ...logging_system import log_info

if TYPE_CHECKING:
  from ..core.node import Numeric
  from ..expression import Expression


class FlyweightTable:
  """Canonical numeric nodes shared by every handle that needs them"""

  def __init__(self, small_int_limit: int = 12):
    self.small_int_limit = small_int_limit
    self._handles: Dict[tuple, 'Expression'] = {}
    self.hits = 0
    self.misses = 0
    self._populate()

  def _populate(self):
    # Import here to avoid circular imports
    from ..core.node import Numeric
    from ..core.operators import StatusFlags
    from ..expression import Expression
    values = list(range(-self.small_int_limit, self.small_int_limit + 1))
    values += [Fraction(1, 2), Fraction(-1, 2), 0.0]
    for value in values:
      node = Numeric(value)
      node.flags |= StatusFlags.FLYWEIGHT | StatusFlags.EVALUATED
      # the table's own handle keeps every entry alive for the process lifetime
      self._handles[self._key(node.value)] = Expression(node)

  @staticmethod
  def _key(value) -> tuple:
    # 0 and 0.0 are distinct entries
    return (type(value).__name__, value)

  def lookup(self, value) -> Optional['Numeric']:
    handle = self._handles.get(self._key(value))
    if handle is None:
      self.misses += 1
      return None
    self.hits += 1
    return handle._node

  def zero(self) -> 'Expression':
    return self._handles[('int', 0)]

  def __len__(self) -> int:
    return len(self._handles)

  def __contains__(self, value) -> bool:
    return self._key(value) in self._handles

  def get_stats(self) -> dict:
    """Get table statistics"""
    total = self.hits + self.misses
    return {
      'size': len(self._handles),
      'hits': self.hits,
      'misses': self.misses,
      'hit_rate': self.hits / total if total else 0.0
    }


# Global instance, created on first use
_GLOBAL_TABLE: Optional[FlyweightTable] = None
_INITIALIZED = False
_TABLE_LOCK = threading.Lock()


def get_flyweights() -> FlyweightTable:
  """Get the global flyweight table, building it on first use"""
  global _GLOBAL_TABLE, _INITIALIZED

  if _INITIALIZED and _GLOBAL_TABLE is not None:
    return _GLOBAL_TABLE

  with _TABLE_LOCK:
    if not _INITIALIZED or _GLOBAL_TABLE is None:
      _GLOBAL_TABLE = FlyweightTable(get_settings().small_int_flyweights)
      _INITIALIZED = True
      log_info(f"Flyweight table created with {len(_GLOBAL_TABLE)} shared numerics")

  return _GLOBAL_TABLE


def reset_flyweights():
  """Drop the global table; the next lookup rebuilds it from the current settings.

  Handles that still hold old entries keep them alive. Those nodes stay
  flagged as flyweights, so writes through them still clone first.
  """
  global _GLOBAL_TABLE, _INITIALIZED
  with _TABLE_LOCK:
    _GLOBAL_TABLE = None
    _INITIALIZED = False


def get_stats() -> dict:
  """Statistics of the global table"""
  return get_flyweights().get_stats()
