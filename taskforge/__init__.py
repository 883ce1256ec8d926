"""taskforge - autonomous task scheduler.

Turns a milestone plan into an ordered stream of tasks, honors dependency and
priority constraints, splits oversized tasks and rolls progress up through the
project hierarchy.
"""

__version__ = "0.1.0"
