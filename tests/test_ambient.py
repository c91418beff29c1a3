import logging

import numpy as np
import pytest

from symbolic_algebra import (
    Expression, ExpressionValidator, Function, InconsistencyError, LogLevel, Numeric, Power, Symbol,
    configure, configure_logging, function, get_flyweights, get_logger, get_settings, lst, relation,
    reset_flyweights, set_log_level, symbol, sympy_simplify
)
from symbolic_algebra import expression_utils
from symbolic_algebra.expression_tree.utils import (
    calculate_tree_depth, count_distinct_nodes, count_node_kinds, count_nodes,
    find_nodes_by_type, get_all_nodes, get_functions, get_numerics, get_symbols
)


def test_settings_defaults_and_validation():
    settings = get_settings()
    assert settings.max_recursion_level == 1024
    assert settings.checked_downcasts is True
    with pytest.raises(ValueError):
        configure(max_recursion_level=0)
    with pytest.raises(ValueError):
        configure(no_such_setting=1)
    assert configure(checked_downcasts=False).checked_downcasts is False


def test_copy_on_write_is_logged(x, y, z, caplog):
    configure_logging(LogLevel.DETAILED)
    caplog.set_level(logging.DEBUG, logger='symbolic_algebra')
    a = x + y
    b = Expression(a)
    b[0] = z
    assert any('copy-on-write' in r.getMessage() for r in caplog.records)


def test_copy_on_write_silent_at_minimal_level(x, y, z, caplog):
    caplog.set_level(logging.DEBUG, logger='symbolic_algebra')
    a = x + y
    b = Expression(a)
    b[0] = z
    assert not any('copy-on-write' in r.getMessage() for r in caplog.records)


def test_dbgprint(x, caplog):
    caplog.set_level(logging.INFO, logger='symbolic_algebra')
    assert (x + 1).dbgprint() == 'x+1'
    assert any(r.getMessage() == 'x+1' for r in caplog.records)


def test_flyweight_table_size_follows_settings():
    table = get_flyweights()
    assert len(table) == 28
    assert 0 in table and 0.0 in table and -12 in table
    assert 13 not in table
    configure(small_int_flyweights=3)
    reset_flyweights()
    assert len(get_flyweights()) == 10
    assert get_flyweights().lookup(5) is None


def test_flyweight_stats():
    reset_flyweights()
    Expression(1)
    Expression(1000)
    stats = get_flyweights().get_stats()
    assert stats['hits'] >= 1 and stats['misses'] >= 1
    assert 0.0 < stats['hit_rate'] < 1.0


def test_validator(x, y):
    assert ExpressionValidator.is_valid_expression(x ** 2 + y)
    assert ExpressionValidator.is_valid_expression(lst(relation(x, 1)))
    assert not ExpressionValidator.is_valid_expression(x + Expression(float('inf')))
    assert not ExpressionValidator.is_valid_expression(
        Expression(Function('sin', [relation(x, 1)])))
    assert ExpressionValidator.is_valid_expression(x + y, {'x': [1.0, 2.0], 'y': 3.0})
    assert not ExpressionValidator.is_valid_expression(x ** -1, {'x': 0.0})
    assert not ExpressionValidator.is_valid_expression(x + y, {'x': 1.0})
    ExpressionValidator.check_is_polynomial(x ** 2 + y, x)
    ExpressionValidator.check_is_polynomial((x + y) ** 3, x)
    with pytest.raises(InconsistencyError):
        ExpressionValidator.check_is_polynomial(function('sin', x), x)


def test_validator_detects_stale_hash(x, y, z):
    a = x + y
    a.gethash()
    assert ExpressionValidator.is_valid_expression(a)
    # bypass set_op, which would have invalidated the cache
    a._node._operands[0] = Expression(z)
    assert not ExpressionValidator.is_valid_expression(a)


def test_numeric_evaluation_broadcasts(x, y):
    e = x * y + function('sin', x)
    xs = np.linspace(0.0, 1.0, 5)
    values = e.evaluate({x: xs, 'y': 2.0})
    assert values.shape == (5,)
    assert np.allclose(values, xs * 2.0 + np.sin(xs))
    grid = (x ** 2).evaluate({'x': np.arange(6.0).reshape(2, 3)})
    assert grid.shape == (2, 3)
    assert np.allclose(grid, np.arange(6.0).reshape(2, 3) ** 2)
    assert np.allclose(Expression(3).evaluate({}), 3.0)
    with pytest.raises(ValueError):
        x.evaluate({'y': 1.0})


def test_tree_utils(x, y):
    shared = x + 1
    e = shared * shared + function('sin', y)
    kinds = count_node_kinds(e)
    assert kinds['Add'] == 2
    assert kinds['Power'] == 1
    assert count_nodes(e) == len(get_all_nodes(e, 'depth_first'))
    assert count_distinct_nodes(e) <= count_nodes(e)
    assert calculate_tree_depth(x) == 1
    assert calculate_tree_depth(e) == 4
    assert set(get_symbols(e)) == {'x', 'y'}
    assert all(isinstance(n, Power) for n in find_nodes_by_type(e, Power))
    assert [f.name for f in get_functions(e)] == ['sin']
    assert all(isinstance(n, Numeric) for n in get_numerics(e))
    with pytest.raises(ValueError):
        get_all_nodes(e, 'sideways')


def test_free_function_wrappers(x, y):
    e = x ** 2 + y
    assert expression_utils.nops(e) == 2
    assert expression_utils.op(e, 1) == x ** 2
    assert expression_utils.degree(e, x) == 2
    assert expression_utils.coeff(e, x, 2) == 1
    assert expression_utils.diff(e, x) == 2 * x
    assert expression_utils.subs(e, x, 2) == y + 4
    assert expression_utils.has(e, y)
    assert expression_utils.is_zero(e - e)
    assert expression_utils.lhs(relation(x, y)) == x
    assert expression_utils.free_symbols(y + x) == [x, y]
    assert all(isinstance(s._node, Symbol) for s in expression_utils.free_symbols(e))


def test_sympy_simplify_cache(x):
    expression_utils.clear_simplification_cache()
    e = function('sin', x) ** 2 + function('cos', x) ** 2
    assert sympy_simplify(e) == 1
    assert len(expression_utils._SIMPLIFICATION_CACHE) == 1
    assert sympy_simplify(symbol('q') * 2 / 2) == symbol('q')


def test_log_level_and_log_file(x, y, tmp_path):
    path = tmp_path / 'algebra.log'
    configure_logging(LogLevel.SILENT, log_path=str(path))
    a = x + y
    b = Expression(a)
    b[0] = 1
    set_log_level(LogLevel.DETAILED)
    c = Expression(b)
    c[1] = 2
    for handler in get_logger().logger.handlers:
        handler.flush()
    assert path.read_text().count('copy-on-write') == 1


def test_sympy_simplify_cache_is_bounded(x, y):
    expression_utils.clear_simplification_cache()
    configure(simplification_cache_size=2)
    first = x * 2 / 2
    sympy_simplify(first)
    sympy_simplify(y + y)
    sympy_simplify(x + x)
    cache = expression_utils._SIMPLIFICATION_CACHE
    assert len(cache) == 2
    assert first.gethash() not in cache
    # a hit refreshes the entry, so the next insertion evicts the other one
    sympy_simplify(y + y)
    sympy_simplify(x * y)
    assert (y + y).gethash() in cache
    assert (x + x).gethash() not in cache
    expression_utils.clear_simplification_cache()
    assert len(cache) == 0
    with pytest.raises(ValueError):
        configure(simplification_cache_size=-1)


def test_coefficient_and_symmetry_wrappers(x, y):
    assert expression_utils.integer_content(4 * x + 6) == 2
    assert expression_utils.max_coefficient(4 * x - 6) == 6
    assert expression_utils.symmetrize(x ** 2 * y, [x, y]) == (x ** 2 * y + y ** 2 * x) / 2
    assert expression_utils.antisymmetrize(x * y, [x, y]) == 0
    assert expression_utils.symmetrize_cyclic(x - y, [x, y]) == 0
