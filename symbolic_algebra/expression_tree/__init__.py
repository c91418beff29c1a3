"""Expression Tree Module

Reference-counted, copy-on-write expression handles over shared tree nodes.
"""

from .expression import (
    Expression, ElementProxy,
    are_trivially_equal, swap, ex_is_equal, ex_is_less,
    symbol, symbols, wild, constant, relation, lst, function, indexed
)
from .core.node import (
    Node,
    Numeric, Constant, Symbol, Wildcard,
    ExpairSeq, Add, Mul, Power,
    Function, FunctionSpec, FUNCTION_REGISTRY, register_function,
    Relational, Container, Lst, Indexed,
    live_node_count
)
from .core.iterator import ConstIterator
from .core.operators import (
    TypeTag, StatusFlags, InfoFlags, ReturnType,
    SubsOptions, SeriesOptions, ExpandOptions,
    OpType, FUNCTION_OP_MAP, CONSTANT_VALUES
)
from .optimization import FlyweightTable, get_flyweights, reset_flyweights
from .utils import (
    is_a, is_exactly_a, ex_to, ex_to_checked,
    ContainerBuilder,
    PrintContext, PrintLatex, PrintTree,
    ExpressionValidator
)

__all__ = [
    "Expression", "ElementProxy",
    "are_trivially_equal", "swap", "ex_is_equal", "ex_is_less",
    "symbol", "symbols", "wild", "constant", "relation", "lst", "function", "indexed",
    "Node", "Numeric", "Constant", "Symbol", "Wildcard",
    "ExpairSeq", "Add", "Mul", "Power",
    "Function", "FunctionSpec", "FUNCTION_REGISTRY", "register_function",
    "Relational", "Container", "Lst", "Indexed",
    "live_node_count",
    "ConstIterator",
    "TypeTag", "StatusFlags", "InfoFlags", "ReturnType",
    "SubsOptions", "SeriesOptions", "ExpandOptions",
    "OpType", "FUNCTION_OP_MAP", "CONSTANT_VALUES",
    "FlyweightTable", "get_flyweights", "reset_flyweights",
    "is_a", "is_exactly_a", "ex_to", "ex_to_checked",
    "ContainerBuilder",
    "PrintContext", "PrintLatex", "PrintTree",
    "ExpressionValidator"
]
