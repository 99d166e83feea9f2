"""
Guide integrity checks.

Importing this package registers every rule; ``CHECKS`` holds the
per-collection check functions in run order.
"""

from guidelint.checks import fences, index, links, navigation  # noqa: F401
from guidelint.checks.base import CHECKS, RULES, CheckContext, RuleInfo, make_finding

__all__ = ["CHECKS", "RULES", "CheckContext", "RuleInfo", "make_finding"]
