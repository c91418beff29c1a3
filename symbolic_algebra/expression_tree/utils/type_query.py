from typing import Type, TypeVar

from ...config import get_settings
from ...errors import TypeMismatchError
from ..core.node import Node
from ..expression import Expression

T = TypeVar('T', bound=Node)


def is_a(e: Expression, cls: Type[Node]) -> bool:
  """True if the held node is a cls or one of its subclasses"""
  return isinstance(e._node, cls)


def is_exactly_a(e: Expression, cls: Type[Node]) -> bool:
  """True only if the held node's kind is cls itself"""
  return type(e._node) is cls


def ex_to(e: Expression, cls: Type[T]) -> T:
  """Held node typed as cls.

  Callers are expected to have checked is_a(e, cls). The check is repeated
  here unless checked_downcasts has been switched off in the settings.
  """
  if get_settings().checked_downcasts:
    return ex_to_checked(e, cls)
  return e._node


def ex_to_checked(e: Expression, cls: Type[T]) -> T:
  node = e._node
  if not isinstance(node, cls):
    raise TypeMismatchError(cls.__name__, type(node).__name__)
  return node
