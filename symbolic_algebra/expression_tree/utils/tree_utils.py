"""
Tree Utility Functions

Traversal and inspection helpers shared by the printers, the sympy bridge and
the validator. All walks are iterative, so arbitrarily deep trees are safe.
"""

from collections import Counter
from typing import Dict, List, Union, TypeVar, cast

from ..core.node import Node, Symbol, Numeric, Function
from ..expression import Expression

T = TypeVar('T', bound=Node)

NodeLike = Union[Node, Expression]


def _root(node: NodeLike) -> Node:
    return node._node if isinstance(node, Expression) else node


def get_all_nodes(node: NodeLike, traversal_order: str = 'breadth_first') -> List[Node]:
    """
    Get all nodes in the tree using specified traversal order.

    Shared subtrees are visited once per occurrence.

    Args:
        node: Root node or handle of the tree
        traversal_order: 'breadth_first' (default) or 'depth_first'

    Returns:
        List of all nodes in the tree
    """
    if traversal_order == 'breadth_first':
        return _breadth_first_traversal(_root(node))
    elif traversal_order == 'depth_first':
        return _depth_first_traversal(_root(node))
    else:
        raise ValueError(f"Invalid traversal_order: {traversal_order}")


def _breadth_first_traversal(node: Node) -> List[Node]:
    """Breadth-first traversal (iterative)"""
    nodes_to_visit = [node]
    all_nodes = []
    position = 0

    while position < len(nodes_to_visit):
        current_node = nodes_to_visit[position]
        position += 1
        all_nodes.append(current_node)
        nodes_to_visit.extend(h._node for h in current_node._operands)

    return all_nodes


def _depth_first_traversal(node: Node) -> List[Node]:
    """Pre-order depth-first traversal (iterative)"""
    stack = [node]
    all_nodes = []

    while stack:
        current_node = stack.pop()
        all_nodes.append(current_node)
        stack.extend(reversed([h._node for h in current_node._operands]))

    return all_nodes


def calculate_tree_depth(node: NodeLike) -> int:
    """
    Calculate the maximum depth of the tree.

    Args:
        node: Root node or handle of the tree

    Returns:
        Maximum depth (leaf nodes have depth 1)
    """
    deepest = 0
    stack = [(_root(node), 1)]
    while stack:
        current_node, depth = stack.pop()
        deepest = max(deepest, depth)
        stack.extend((h._node, depth + 1) for h in current_node._operands)
    return deepest


def count_nodes(node: NodeLike) -> int:
    """Number of node occurrences in the tree"""
    return len(get_all_nodes(node))


def count_node_kinds(node: NodeLike) -> Dict[str, int]:
    """Occurrences per node kind, e.g. {'Symbol': 3, 'Add': 1}"""
    return dict(Counter(type(n).__name__ for n in get_all_nodes(node)))


def count_distinct_nodes(node: NodeLike) -> int:
    """Number of distinct node objects; lower than count_nodes when subtrees are shared"""
    return len({id(n) for n in get_all_nodes(node)})


def find_nodes_by_type(node: NodeLike, node_type: type) -> List[Node]:
    """
    Find all nodes of a specific type in the tree.

    Args:
        node: Root node or handle of the tree
        node_type: Type of nodes to find (e.g., Symbol, Power)

    Returns:
        List of nodes matching the specified type
    """
    all_nodes = get_all_nodes(node)
    return [n for n in all_nodes if isinstance(n, node_type)]


def get_symbols(node: NodeLike) -> Dict[str, Expression]:
    """Name -> handle for every symbol in the tree, in breadth-first order"""
    found: Dict[str, Expression] = {}
    for n in find_nodes_by_type(node, Symbol):
        found.setdefault(n.name, Expression(n))
    return found


# Convenience functions for common operations
def get_numerics(node: NodeLike) -> List[Numeric]:
    """Get all numeric nodes in the tree."""
    return cast(List[Numeric], find_nodes_by_type(node, Numeric))


def get_functions(node: NodeLike) -> List[Function]:
    """Get all function application nodes in the tree."""
    return cast(List[Function], find_nodes_by_type(node, Function))
