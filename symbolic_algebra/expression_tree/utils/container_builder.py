from typing import Callable, MutableSequence, Optional, Union

from ...errors import TypeMismatchError
from ..core.node import Container
from ..expression import Expression


class ContainerBuilder:
  """Chained appends onto a list or an Lst handle.

  builder.append(x).append(2).append(y) adds three elements to the same target.
  Every value goes through one conversion rule, Expression by default.
  """

  __slots__ = ('target', 'convert')

  def __init__(self, target: Union[MutableSequence, Expression],
               convert: Optional[Callable] = None):
    if isinstance(target, Expression) and not isinstance(target._node, Container):
      raise TypeMismatchError('lst', type(target._node).__name__)
    self.target = target
    self.convert = convert if convert is not None else Expression

  def append(self, value) -> 'ContainerBuilder':
    self.target.append(self.convert(value))
    return self

  def extend(self, *values) -> 'ContainerBuilder':
    for value in values:
      self.append(value)
    return self

  def __lshift__(self, value) -> 'ContainerBuilder':
    return self.append(value)
