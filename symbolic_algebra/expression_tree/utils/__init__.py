"""Utilities for expression trees."""

from .type_query import is_a, is_exactly_a, ex_to, ex_to_checked
from .container_builder import ContainerBuilder
from .sympy_utils import parse_expression, from_sympy, series_via_sympy, to_latex
from .printing import PrintContext, PrintLatex, PrintTree
from .tree_utils import (
    get_all_nodes, calculate_tree_depth, count_nodes, count_node_kinds,
    count_distinct_nodes, find_nodes_by_type, get_symbols, get_numerics, get_functions
)
from .validator import ExpressionValidator

__all__ = [
    'is_a', 'is_exactly_a', 'ex_to', 'ex_to_checked',
    'ContainerBuilder',
    'parse_expression', 'from_sympy', 'series_via_sympy', 'to_latex',
    'PrintContext', 'PrintLatex', 'PrintTree',
    'get_all_nodes', 'calculate_tree_depth', 'count_nodes', 'count_node_kinds',
    'count_distinct_nodes', 'find_nodes_by_type', 'get_symbols', 'get_numerics', 'get_functions',
    'ExpressionValidator'
]
