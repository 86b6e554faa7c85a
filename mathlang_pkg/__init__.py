"""mathlang: an interpreter for a small mathematical expression language.

The evaluation entry points are re-exported here::

    >>> from mathlang_pkg import evaluate
    >>> evaluate("60 km/h * 2 h").result
    '120 km'
"""

from .api import convert_units, diff, evaluate, parse, validate_expression

__all__ = [
    "config",
    "tokenizer",
    "ast_nodes",
    "parser",
    "evaluator",
    "calculus",
    "units",
    "constants",
    "formatting",
    "symbolic",
    "worker",
    "cli",
    "types",
    "api",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "parse",
    "evaluate",
    "validate_expression",
    "diff",
    "convert_units",
]
