"""
Domain Modules

Pluggable rule-evaluation units the engine dispatches content to.
"""

from .base import DomainModule, ModuleConfig
from .mock import MockModule

__all__ = [
    "DomainModule",
    "ModuleConfig",
    "MockModule",
]
