import numbers

from ..expression import Expression


class ConstIterator:
  """Random-access read-only cursor over the operands of one node.

  The iterator owns a handle copy, so the node it walks stays alive even if
  the originating handle is rebound or modified through copy-on-write.
  Dereferencing always synthesizes a fresh handle.
  """

  __slots__ = ('_handle', '_index')

  def __init__(self, handle: Expression, index: int = 0):
    self._handle = Expression(handle)
    self._index = index

  @property
  def index(self) -> int:
    return self._index

  def deref(self) -> Expression:
    return self._handle._node.op(self._index)

  def __getitem__(self, n: int) -> Expression:
    return self._handle._node.op(self._index + n)

  def next_(self) -> 'ConstIterator':
    self._index += 1
    return self

  def prev(self) -> 'ConstIterator':
    self._index -= 1
    return self

  def __add__(self, n):
    if not isinstance(n, numbers.Integral):
      return NotImplemented
    return ConstIterator(self._handle, self._index + n)

  __radd__ = __add__

  def __sub__(self, other):
    if isinstance(other, ConstIterator):
      return self._index - other._index
    if isinstance(other, numbers.Integral):
      return ConstIterator(self._handle, self._index - other)
    return NotImplemented

  def __iadd__(self, n):
    self._index += n
    return self

  def __isub__(self, n):
    self._index -= n
    return self

  def __eq__(self, other):
    if not isinstance(other, ConstIterator):
      return NotImplemented
    return self._handle._node is other._handle._node and self._index == other._index

  def __ne__(self, other):
    result = self.__eq__(other)
    return result if result is NotImplemented else not result

  def __hash__(self):
    return hash((id(self._handle._node), self._index))

  def __lt__(self, other):
    return self._index < other._index

  def __le__(self, other):
    return self._index <= other._index

  def __gt__(self, other):
    return self._index > other._index

  def __ge__(self, other):
    return self._index >= other._index

  def __iter__(self):
    return self

  def __next__(self) -> Expression:
    if self._index >= self._handle._node.nops():
      raise StopIteration
    value = self.deref()
    self._index += 1
    return value

  def __repr__(self):
    return f"ConstIterator(index={self._index}, nops={self._handle._node.nops()})"
