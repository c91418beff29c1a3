"""
Process-wide settings for the expression core.

A single AlgebraSettings instance is shared by the whole package. Use
configure() to override fields and reset_settings() to go back to defaults.
"""

from dataclasses import dataclass, fields, replace
from typing import Optional


@dataclass
class AlgebraSettings:
    # eval()/evalf() raise once the level reaches -max_recursion_level
    max_recursion_level: int = 1024
    # ex_to() verifies its precondition when True
    checked_downcasts: bool = True
    # integers in [-n, n] are served from the flyweight table
    small_int_flyweights: int = 12
    # sympy_simplify keeps at most this many results
    simplification_cache_size: int = 256


_global_settings: Optional[AlgebraSettings] = None


def get_settings() -> AlgebraSettings:
    """Get or create the global settings instance"""
    global _global_settings
    if _global_settings is None:
        _global_settings = AlgebraSettings()
    return _global_settings


def configure(**overrides) -> AlgebraSettings:
    """Replace selected fields of the global settings"""
    global _global_settings
    known = {f.name for f in fields(AlgebraSettings)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown settings: {sorted(unknown)}")
    if overrides.get('max_recursion_level', 1) <= 0:
        raise ValueError("max_recursion_level must be positive")
    if overrides.get('simplification_cache_size', 1) < 0:
        raise ValueError("simplification_cache_size must be non-negative")
    _global_settings = replace(get_settings(), **overrides)
    return _global_settings


def reset_settings() -> AlgebraSettings:
    """Restore default settings"""
    global _global_settings
    _global_settings = AlgebraSettings()
    return _global_settings
