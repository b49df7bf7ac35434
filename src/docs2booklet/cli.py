"""Command-line interface for docs2booklet."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List

from .version import __version__


def _get_usage() -> str:
    return (
        f"docs2booklet {__version__}\n"
        "Usage:\n"
        "  docs2booklet [--help] [--version|--ver]\n"
        "  docs2booklet ENTRY_POINT (--build-dir DIR | --base-url URL) [options]\n\n"
        "Options:\n"
        "  -o, --output FILE            Output PDF path (default: docs2booklet.pdf)\n"
        "  --config FILE                JSON options file (cover, toc, margin, header, footer, selectors, ...)\n"
        "  --cover-title TITLE          Cover title (overrides the options file)\n"
        "  --cover-subtitle SUBTITLE    Cover subtitle (overrides the options file)\n"
        "  --cover-background IMAGE     Cover background image (overrides the options file)\n"
        "  --doc-version VERSION        Version label for cover and header\n"
        "  --browser-arg=ARG            Additional Chromium argument, added to the defaults (repeatable)\n"
        "  --no-toc                     Skip the table of contents page\n"
        "  --no-autonumber              Disable section numbering\n"
        "  --verbose                    Verbose progress logs\n"
        "  --debug                      Debug logs + extra artifacts"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("entry_point", nargs="?", help="Entry point page path (e.g. /docs/intro)")
    parser.add_argument("--help", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("--ver", action="store_true")
    parser.add_argument("--build-dir", help="Static site build directory containing one index.html per page")
    parser.add_argument("--base-url", help="Base URL of a served site to crawl instead of a build directory")
    parser.add_argument("-o", "--output", default=None, help="Output PDF path")
    parser.add_argument("--config", help="JSON options file")
    parser.add_argument("--cover-title", help="Title for cover page (overrides the options file)")
    parser.add_argument("--cover-subtitle", help="Subtitle for cover page (overrides the options file)")
    parser.add_argument("--cover-background", help="Background image path for cover page")
    parser.add_argument("--doc-version", help="Version label shown on cover and header")
    parser.add_argument("--browser-arg", action="append", default=None, help="Additional Chromium argument")
    parser.add_argument("--no-toc", action="store_true", help="Skip the table of contents page")
    parser.add_argument("--no-autonumber", action="store_true", help="Disable section numbering")
    parser.add_argument("--verbose", action="store_true", help="Verbose progress logs")
    parser.add_argument("--debug", action="store_true", help="Debug logs + extra artifacts")
    return parser


def _cli_overrides(args: argparse.Namespace, base_browser_args: List[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        "entry_point": args.entry_point,
        "output": args.output,
        "base_directory": args.build_dir,
        "base_url": args.base_url,
        "version": args.doc_version,
        "debug": True if args.debug else None,
    }
    cover = {
        "title": args.cover_title,
        "subtitle": args.cover_subtitle,
        "background_image": args.cover_background,
    }
    if any(value is not None for value in cover.values()):
        overrides["cover"] = cover
    if args.no_toc:
        overrides["toc"] = False
    if args.no_autonumber:
        overrides["autonumber"] = False
    if args.browser_arg:
        overrides["browser_args"] = list(base_browser_args) + list(args.browser_arg)
    return overrides


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        print(_get_usage())
        return 2

    if not argv or args.help:
        print(_get_usage())
        return 0

    if args.version or args.ver:
        print(__version__)
        return 0

    try:
        from docs2booklet import core, options as booklet_options
    except Exception as exc:
        print(f"Unable to import docs2booklet core: {exc}", file=sys.stderr)
        return 6

    if not args.entry_point:
        print(_get_usage())
        print("ENTRY_POINT is required", file=sys.stderr)
        return core.EXIT_INVALID_ARGS

    if bool(args.build_dir) == bool(args.base_url):
        print("Exactly one of --build-dir and --base-url is required", file=sys.stderr)
        return core.EXIT_INVALID_ARGS

    if args.build_dir:
        build_dir = Path(args.build_dir).expanduser().resolve()
        if not build_dir.exists() or not build_dir.is_dir():
            print(f"Build directory not found: {build_dir}", file=sys.stderr)
            return core.EXIT_INVALID_ARGS

    if args.cover_background and not Path(args.cover_background).expanduser().is_file():
        print(f"Cover background image not found: {args.cover_background}", file=sys.stderr)
        return core.EXIT_INVALID_ARGS

    core.setup_logging(args.verbose, args.debug)

    config: Dict[str, Any] = {}
    if args.config:
        config_path = Path(args.config).expanduser().resolve()
        if not config_path.exists() or not config_path.is_file():
            print(f"Options file not found: {config_path}", file=sys.stderr)
            return core.EXIT_INVALID_ARGS
        try:
            config = booklet_options.load_options_file(config_path)
        except core.OptionsError as exc:
            print(str(exc), file=sys.stderr)
            return core.EXIT_INVALID_ARGS

    base_browser_args = config.get("browser_args")
    if not isinstance(base_browser_args, list):
        base_browser_args = list(booklet_options.DEFAULT_BROWSER_ARGS)

    try:
        merged = booklet_options.deep_merge(config, _cli_overrides(args, base_browser_args))
        options = booklet_options.build_options(merged)
    except core.OptionsError as exc:
        print(str(exc), file=sys.stderr)
        return core.EXIT_INVALID_ARGS

    if options.output.exists() and options.output.is_dir():
        print(f"Output path is a directory: {options.output}", file=sys.stderr)
        return core.EXIT_OUTPUT

    from docs2booklet import generator

    try:
        result = generator.generate_booklet(options)
    except core.MissingPageError as exc:
        print(str(exc), file=sys.stderr)
        return core.EXIT_MISSING_PAGE
    except core.PageFetchError as exc:
        print(str(exc), file=sys.stderr)
        return core.EXIT_MISSING_PAGE
    except (core.RendererError, RuntimeError) as exc:
        print(f"PDF generation failed: {exc}", file=sys.stderr)
        return core.EXIT_RENDER
    except OSError as exc:
        print(f"Unable to write output {options.output}: {exc}", file=sys.stderr)
        return core.EXIT_OUTPUT

    print(f"PDF generated successfully >> {result.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
