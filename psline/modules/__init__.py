"""
Prompt modules for psline.
"""

from .base import Detection, ModuleDescriptor, ModuleResult

__all__ = [
    "Detection",
    "ModuleDescriptor",
    "ModuleResult",
]
