#!/usr/bin/env python3
"""ctor: inspect and materialize construction descriptors."""

import argparse
import importlib
import json
import logging
import sys

from ctor.descriptor import Ctor
from ctor.identity import lineage


def load_ctor(ref: str) -> Ctor:
    """Resolve "package.module:attr" to a Ctor.

    attr may be a Ctor or a zero-argument callable returning one.
    """
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"expected 'module:attr', got {ref!r}")
    obj = importlib.import_module(module_name)
    for part in attr.split("."):
        obj = getattr(obj, part)
    if not isinstance(obj, Ctor) and callable(obj):
        obj = obj()
    if not isinstance(obj, Ctor):
        raise TypeError(f"{ref} is {type(obj).__name__}, not a Ctor")
    return obj


def cmd_show(args):
    ctor = load_ctor(args.ref)
    info = {
        "levels": [
            {
                "type": f"{level.target.__module__}.{level.target.__qualname__}",
                "args": [repr(a) for a in level.args],
                "kwargs": {k: repr(v) for k, v in level.kwargs.items()},
            }
            for level in ctor.chain()
        ],
    }
    json.dump(info, sys.stdout, indent=2)
    print()


def cmd_construct(args):
    obj = load_ctor(args.ref).construct()
    info = {
        "lineage": [k.__qualname__ for k in lineage(obj)],
        "fields": vars(obj),
    }
    json.dump(info, sys.stdout, indent=2, default=repr)
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(prog="ctor", description="Deferred construction descriptors")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine activity to stderr")
    sub = parser.add_subparsers(dest="command")

    # show
    p = sub.add_parser("show", help="Show a descriptor chain as JSON")
    p.add_argument("ref", help="module:attr of a Ctor or a factory returning one")
    p.set_defaults(func=cmd_show)

    # construct
    p = sub.add_parser("construct", help="Materialize a descriptor and show the result")
    p.add_argument("ref", help="module:attr of a Ctor or a factory returning one")
    p.set_defaults(func=cmd_construct)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
