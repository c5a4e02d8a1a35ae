"""CLI entry point: htmlquery [SELECTOR] [options] < page.html"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from htmlquery import settings
from htmlquery.errors import HtmlQueryError
from htmlquery.items import QueryConfig
from htmlquery.query import extract_json_detailed, process_html

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="htmlquery",
        description=(
            "Query HTML with CSS selectors and pull JSON out of <script> tags.\n"
            "Reads HTML from standard input (or --filename), writes one result per line."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("selector", nargs="?", default=settings.DEFAULT_SELECTOR,
                        metavar="SELECTOR",
                        help=f"CSS selector (default: {settings.DEFAULT_SELECTOR})")
    parser.add_argument("-f", "--filename", default=None, metavar="FILE",
                        help="Read HTML from FILE instead of standard input")
    parser.add_argument("-o", "--output", default=None, metavar="FILE",
                        help="Write results to FILE instead of standard output")
    parser.add_argument("-t", "--text", action="store_true", default=False,
                        help="Output text content only")
    parser.add_argument("-w", "--ignore-whitespace", action="store_true", default=False,
                        help="With --text, skip whitespace-only text nodes")
    parser.add_argument("-p", "--pretty", action="store_true", default=False,
                        help="Pretty-print markup (or indent JSON with --json)")
    parser.add_argument("-c", "--compact", action="store_true", default=False,
                        help="Compact output: minified markup, compact JSON")
    parser.add_argument("-a", "--attribute", action="append", default=[], metavar="NAME",
                        help="Output the value of attribute NAME (repeatable)")
    parser.add_argument("-r", "--remove-nodes", action="append", default=[],
                        metavar="SELECTOR",
                        help="Remove nodes matching SELECTOR from the output (repeatable)")
    parser.add_argument("-b", "--base", default=None, metavar="URL",
                        help="Resolve relative links against URL")
    parser.add_argument("-d", "--detect-base", action="store_true", default=False,
                        help="Use the document's <base href> to resolve relative links")
    parser.add_argument("--json", action="store_true", default=False,
                        help="Parse matched elements' text as JSON (LD+JSON mode)")
    parser.add_argument("--var", default=None, metavar="PATTERN",
                        help="Decode the value assigned by 'PATTERN = ...' (implies --json)")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        metavar="{DEBUG,INFO,WARNING,ERROR}",
                        help=f"Logging level (default: {settings.LOG_LEVEL})")
    return parser


def _configure_logging(level: str) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _read_input(filename: str | None) -> bytes:
    if filename:
        return Path(filename).read_bytes()
    return sys.stdin.buffer.read()


def _write_output(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
        sys.stdout.flush()


def _run_json(html: bytes, args: argparse.Namespace) -> str:
    result = extract_json_detailed(html, args.selector, args.var)
    if result.all_failed:
        first = result.failures[0]
        raise HtmlQueryError(
            f"none of the {result.matched} matched element(s) could be decoded "
            f"(first failure, {first.stage}: {first.message})",
        )
    indent = 2 if args.pretty else None
    separators = (",", ":") if indent is None else None
    lines = [
        json.dumps(value, ensure_ascii=False, indent=indent, separators=separators,
                   sort_keys=args.compact)
        for value in result.values
    ]
    return "".join(f"{line}\n" for line in lines)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        html = _read_input(args.filename)
    except OSError as exc:
        print(f"error: cannot read input: {exc}", file=sys.stderr)
        return 1

    try:
        if args.json or args.var is not None:
            output = _run_json(html, args)
        else:
            config = QueryConfig(
                selector=args.selector,
                base=args.base,
                detect_base=args.detect_base,
                text_only=args.text,
                ignore_whitespace=args.ignore_whitespace,
                pretty_print=args.pretty,
                remove_nodes=args.remove_nodes,
                attributes=args.attribute,
                compact=args.compact,
            )
            output = process_html(html, config)
    except HtmlQueryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        _write_output(output, args.output)
    except OSError as exc:
        print(f"error: cannot write output: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
