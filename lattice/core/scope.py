"""
Scope values for grants and access checks.

A grant is scoped in exactly one of three ways:

- GlobalScope: applies in every context and outside any context
- TypeWideScope: applies in every context of one type ("team", "organization")
- ExactScope: applies in one context only

Grant rows persist a scope as two nullable columns (context_id, context_type);
`scope_from_columns` and the `context_id` / `context_type` properties convert
between both forms so the "both columns set" state cannot be produced.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from lattice.core.errors import ValidationError


GLOBAL_SCOPE_KEY = "global"
TYPE_SCOPE_PREFIX = "type:"


class ScopeHint(str, Enum):
    """Request-level scope hint accepted by access checks."""
    EXACT = "exact"
    GLOBAL = "global"
    TYPE_WIDE = "type-wide"


@dataclass(frozen=True)
class ContextRef:
    """A context a check is evaluated in. `id` is None for type-wide lookups."""
    type: str
    id: Optional[str] = None


@dataclass(frozen=True)
class GlobalScope:
    @property
    def context_id(self) -> None:
        return None

    @property
    def context_type(self) -> None:
        return None

    @property
    def key(self) -> str:
        return GLOBAL_SCOPE_KEY


@dataclass(frozen=True)
class TypeWideScope:
    type: str

    def __post_init__(self):
        if not self.type:
            raise ValidationError("Type-wide scope requires a context type")

    @property
    def context_id(self) -> None:
        return None

    @property
    def context_type(self) -> str:
        return self.type

    @property
    def key(self) -> str:
        return f"{TYPE_SCOPE_PREFIX}{self.type}"


@dataclass(frozen=True)
class ExactScope:
    id: str

    def __post_init__(self):
        if not self.id:
            raise ValidationError("Exact scope requires a context id")

    @property
    def context_id(self) -> str:
        return self.id

    @property
    def context_type(self) -> None:
        return None

    @property
    def key(self) -> str:
        return self.id


Scope = Union[GlobalScope, TypeWideScope, ExactScope]

GLOBAL = GlobalScope()


def scope_from_columns(context_id: Optional[str] = None, context_type: Optional[str] = None) -> Scope:
    """
    Build a scope from nullable fields. A context id wins over a context type.
    """
    if context_id:
        return ExactScope(context_id)
    if context_type:
        return TypeWideScope(context_type)
    return GLOBAL
