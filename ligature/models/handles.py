"""
Global handles — unique, human-readable keys pointing at any record.

A ``GlobalHandle`` row maps a handle string to a (ContextClass, ContextID)
pair. Handle relationships default to this model:

    class Article(Model):
        Handle = CharField(max_length=255, null=True)

        relationships = {
            "GlobalHandle": {"kind": "handle"},
        }

Assigning a GlobalHandle copies its ``Handle`` into the record; saving the
record points the handle's ``Context`` back at it.
"""

from __future__ import annotations

from typing import Optional

from .base import Model
from .fields import CharField, IntegerField

__all__ = ["GlobalHandle"]


class GlobalHandle(Model):
    table = "global_handles"

    Handle = CharField(max_length=255, unique=True)
    ContextClass = CharField(max_length=255, null=True)
    ContextID = IntegerField(null=True)

    relationships = {
        "Context": {"kind": "context-parent"},
    }

    @classmethod
    async def create_for(cls, handle: str, context: Optional[Model] = None) -> GlobalHandle:
        """Create a handle, optionally pointing at a saved record."""
        instance = cls(Handle=handle)
        if context is not None:
            instance.set_related("Context", context)
        await instance.save()
        return instance
