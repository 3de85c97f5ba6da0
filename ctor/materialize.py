"""Materialize a descriptor chain into one live instance.

Given a chain root (level 0) to leaf (level N-1):

  1. Register every level's declared type (identity.arm, idempotent).
  2. Build a fresh dispatch table per level: a new class holding a copy of
     the declared type's method table, subclassing the previous level's
     table. Level 0 subclasses Base, the root marker. Method resolution
     therefore walks leaf -> root, whatever the declared types inherit.
  3. Index every level's code objects on the leaf table, so self._super can
     tell which level is executing.
  4. Allocate one record as an instance of the leaf table.
  5. Replay the initializers root -> leaf with the record as self, so all
     field assignments land in one __dict__.

Tables are rebuilt on every call: two materializations of the same Ctor
share no mutable state.
"""

from __future__ import annotations

import logging
from functools import cached_property
from types import CodeType, FunctionType
from typing import TYPE_CHECKING, Any, Iterator, Sequence, TypeVar

from ctor.ancestry import Base
from ctor.config import get_config
from ctor.identity import arm

if TYPE_CHECKING:
    from ctor.descriptor import Ctor

T = TypeVar("T")

logger = logging.getLogger(__name__)


class FieldCollisionError(ValueError):
    """A level's initializer rebound a field set by an earlier level."""


def _nested_codes(code: CodeType) -> Iterator[CodeType]:
    yield code
    for const in code.co_consts:
        if isinstance(const, CodeType):
            yield from _nested_codes(const)


def _codes(value: Any, seen: set[int] | None = None) -> Iterator[CodeType]:
    """Code objects that run on behalf of one method-table entry.

    Includes code nested in a function (comprehensions, generator
    expressions, inner functions) and functions held in a decorator's
    closure or __wrapped__ chain.
    """
    if seen is None:
        seen = set()
    if isinstance(value, (staticmethod, classmethod)):
        value = value.__func__
    if isinstance(value, property):
        for fn in (value.fget, value.fset, value.fdel):
            yield from _codes(fn, seen)
        return
    if isinstance(value, cached_property):
        value = value.func
    while value is not None and id(value) not in seen:
        seen.add(id(value))
        code = getattr(value, "__code__", None)
        if isinstance(code, CodeType):
            yield from _nested_codes(code)
            for cell in getattr(value, "__closure__", None) or ():
                try:
                    contents = cell.cell_contents
                except ValueError:  # empty cell
                    continue
                if isinstance(contents, FunctionType):
                    yield from _codes(contents, seen)
        value = getattr(value, "__wrapped__", None)


def _build_tables(levels: Sequence[Ctor[Any]]) -> list[type]:
    tables = []
    parent: type = Base
    for level in levels:
        entry = arm(level.target)
        namespace = dict(entry.namespace)
        namespace["__qualname__"] = level.target.__qualname__
        namespace["__ctor_declared__"] = level.target
        namespace["__ctor_parent__"] = parent
        parent = type(parent)(level.target.__name__, (parent,), namespace)
        tables.append(parent)
    return tables


def _index_levels(tables: Sequence[type]) -> dict[CodeType, type]:
    # Leaf first: a function shared by two levels belongs to the lower one.
    levels: dict[CodeType, type] = {}
    for table in reversed(tables):
        for value in table.__dict__.values():
            for code in _codes(value):
                levels.setdefault(code, table)
    return levels


def _replay(record: Any, levels: Sequence[Ctor[Any]], policy: str) -> None:
    fields = record.__dict__
    for level in levels:
        before = dict(fields)
        level.target.__init__(record, *level.args, **level.kwargs)
        if policy == "overwrite":
            continue
        clashes = [
            name for name, value in before.items()
            if name in fields and fields[name] is not value
        ]
        if not clashes:
            continue
        if policy == "error":
            raise FieldCollisionError(
                f"{level.target.__qualname__} reassigns {', '.join(clashes)} "
                f"already set by an earlier level"
            )
        logger.warning(
            "%s reassigns %s already set by an earlier level",
            level.target.__qualname__, ", ".join(clashes),
        )


def materialize(ctor: Ctor[T]) -> T:
    """Build a fresh instance from ctor and all of its ancestors.

    Errors raised by an initializer propagate unchanged; the partly
    initialized record is dropped.
    """
    levels = ctor.chain()
    tables = _build_tables(levels)
    leaf = tables[-1]
    type.__setattr__(leaf, "__ctor_levels__", _index_levels(tables))
    record = object.__new__(leaf)
    _replay(record, levels, get_config().field_collisions)
    logger.debug(
        "materialized %s from %d level(s)",
        leaf.__name__, len(levels),
    )
    return record
