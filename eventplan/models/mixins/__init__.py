"""
Model mixins for shared functionality across entities.
"""

from eventplan.models.mixins.guid import GuidMixin, UUIDType

__all__ = ["GuidMixin", "UUIDType"]
