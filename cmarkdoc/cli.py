#!/usr/bin/env python3
"""
Generate Markdown API documentation for C headers or sources.

Usage:
    cmarkdoc include/api.h > API.md
    cmarkdoc --ignore '_*' src/*.c src/*.h -o docs/api.md
    python -m cmarkdoc.cli engine.h -- -Iinclude -DNDEBUG
"""

import argparse
import logging
import sys

from .parser import CLANG_AVAILABLE, PARSERS, parse_source
from .renderer import RenderConfig, render_document

log = logging.getLogger("cmarkdoc")


def _split_clang_args(argv):
    if "--" in argv:
        split = argv.index("--")
        return argv[:split], argv[split + 1 :]
    return argv, []


def build_parser():
    p = argparse.ArgumentParser(
        prog="cmarkdoc",
        description="Generate Markdown documentation for C headers or sources.",
        epilog="Arguments after '--' are passed to libclang unchanged.",
    )
    p.add_argument("files", nargs="+", metavar="FILE", help="C source or header to document")
    p.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Skip symbols whose names match PATTERN (* and ? supported)",
    )
    p.add_argument("-o", "--output", help="Write the document to OUTPUT instead of stdout")
    p.add_argument(
        "--parser",
        choices=PARSERS,
        default="auto",
        help="Declaration parser: libclang, the regex fallback, or auto (default)",
    )
    p.add_argument(
        "--title", default="API Documentation", help="Document title (default: API Documentation)"
    )
    p.add_argument("--no-location", action="store_true", help="Omit 'Defined at' lines")
    p.add_argument("-v", "--verbose", action="store_true", help="Log parser decisions")
    return p


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    own_args, clang_args = _split_clang_args(argv)
    args = build_parser().parse_intermixed_args(own_args)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    if args.parser == "auto" and not CLANG_AVAILABLE:
        log.info("cmarkdoc: clang not found, falling back to regex parser")

    sources = []
    for path in args.files:
        source = parse_source(path, clang_args=clang_args, ignore=args.ignore, parser=args.parser)
        if source is None:
            continue
        log.debug("cmarkdoc: %s: %d declarations", path, len(source.docs))
        sources.append(source)

    if not sources:
        log.error("cmarkdoc: no input file could be processed")
        return 1

    cfg = RenderConfig(title=args.title, show_location=not args.no_location)
    document = render_document(sources, cfg)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(document)
    else:
        sys.stdout.write(document)
    return 0


if __name__ == "__main__":
    sys.exit(main())
