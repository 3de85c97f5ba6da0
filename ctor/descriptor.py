"""Deferred construction descriptors.

A Ctor[T] describes how to build a T without building it: the declared
type, the arguments for its initializer and, optionally, the Ctor of its
parent level. Factories return a Ctor rather than an instance, so a
subclass factory can compose any parent factory:

    class Foo(Base):
        def __init__(self, foo):
            self.foo = foo

        @staticmethod
        def from_text(text) -> Ctor["Foo"]:
            return Ctor.new(Foo, foo=len(text))

    class Bar(Implementation[Foo]):
        def __init__(self, bar):
            self.bar = bar

    bar = from_(Foo.from_text("test")).new(Bar, bar="bar").construct()

Nothing runs until construct(). A Ctor is immutable, may be the parent of
any number of children and may be constructed any number of times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Generic, Mapping, TypeVar

from ctor.config import get_config
from ctor.materialize import materialize


T = TypeVar("T")
C = TypeVar("C")

logger = logging.getLogger(__name__)


class ExtensionReusedError(RuntimeError):
    """A from_() handle produced more than one child (strict_extension)."""


def _format_call(target: type, args: tuple, kwargs: Mapping[str, Any]) -> str:
    params = [repr(a) for a in args] + [f"{k}={v!r}" for k, v in kwargs.items()]
    return f"{target.__qualname__}({', '.join(params)})"


@dataclass(frozen=True, eq=False, repr=False)
class Ctor(Generic[T]):
    """Immutable handle to "build target(*args, **kwargs) on top of parent"."""

    target: type[T]
    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)
    parent: Ctor[Any] | None = None

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "kwargs", MappingProxyType(dict(self.kwargs)))

    @classmethod
    def new(cls, target: type[T], /, *args: Any, **kwargs: Any) -> Ctor[T]:
        """Root of a chain: build target with these initializer arguments."""
        return cls(target, args, kwargs)

    @classmethod
    def new_abstract(cls, target: Any, /, *args: Any, **kwargs: Any) -> Ctor[Any]:
        """Root of a chain for an abstract class.

        Type checkers refuse abstract classes where type[T] is expected, so
        new() cannot take them. This is the same operation with a looser
        signature; annotate the result yourself (ctor: Ctor[Foo] = ...).
        The chain only constructs once a lower level implements every
        abstract method.
        """
        return cls(target, args, kwargs)

    def extend(self, child: type[C], /, *args: Any, **kwargs: Any) -> Ctor[C]:
        """A Ctor for child whose parent level is built by self."""
        return Ctor(child, args, kwargs, parent=self)

    def construct(self) -> T:
        """Build a fresh instance. Can be called any number of times."""
        return materialize(self)

    def chain(self) -> tuple[Ctor[Any], ...]:
        """All levels, root first."""
        levels: list[Ctor[Any]] = []
        node: Ctor[Any] | None = self
        while node is not None:
            levels.append(node)
            node = node.parent
        levels.reverse()
        return tuple(levels)

    def contains(self, cls: type) -> bool:
        """True if cls is the target of this level or of any ancestor level."""
        if self.target is cls:
            return True
        return self.parent is not None and self.parent.contains(cls)

    def __len__(self) -> int:
        return len(self.chain())

    def __repr__(self) -> str:
        levels = " -> ".join(
            _format_call(level.target, level.args, level.kwargs)
            for level in self.chain()
        )
        return f"Ctor[{levels}]"


class Extended(Generic[T]):
    """A Ctor[T] waiting to become the parent level of a child Ctor.

    Meant to be used once, right away: from_(parent).new(Child, ...).
    """

    def __init__(self, parent: Ctor[T]):
        self._parent = parent
        self._used = False

    def new(self, child: type[C], /, *args: Any, **kwargs: Any) -> Ctor[C]:
        """A Ctor for child on top of the wrapped parent.

        Only child's own initializer arguments are given; the parent's are
        already captured in the parent Ctor.
        """
        if self._used:
            if get_config().strict_extension:
                raise ExtensionReusedError(
                    f"from_({self._parent!r}) was already extended; "
                    f"call from_() again for each child"
                )
            logger.debug("reusing extension handle of %r", self._parent)
        self._used = True
        return self._parent.extend(child, *args, **kwargs)


def from_(parent: Ctor[T]) -> Extended[T]:
    """Prepare parent to be extended by a child Ctor."""
    return Extended(parent)
