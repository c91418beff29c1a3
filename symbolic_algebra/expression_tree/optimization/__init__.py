"""Shared canonical nodes for expression trees."""

from .flyweights import FlyweightTable, get_flyweights, reset_flyweights, get_stats

__all__ = ['FlyweightTable', 'get_flyweights', 'reset_flyweights', 'get_stats']
