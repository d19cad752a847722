import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from tikzlive import (
    format_error,
    get_default_render_options,
    parse,
    print_document,
    render,
    to_svg_string,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Render TikZ-like drawings to SVG")
    parser.add_argument("path", help="Path to the drawing source file")
    parser.add_argument(
        "-o",
        "--output",
        help="Write the SVG document to this path (default: stdout)",
    )
    parser.add_argument(
        "--scale",
        type=float,
        help="Pixels per drawing unit (default: 50)",
    )
    parser.add_argument(
        "--padding",
        type=float,
        help="Pixels of padding around the drawing (default: 20)",
    )
    parser.add_argument(
        "--dump-ast",
        action="store_true",
        help="Log the parsed document before rendering",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when the source had parse errors",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    source = Path(args.path).read_text(encoding="utf-8")

    logger.info("Parsing drawing from %s", args.path)
    result = parse(source)
    for error in result.errors:
        logger.error("%s", format_error(error, source))

    if args.dump_ast:
        logger.info("Document:\n%s", print_document(result.document))

    options = get_default_render_options()
    if args.scale is not None:
        options.scale = args.scale
    if args.padding is not None:
        options.padding = args.padding

    tree = render(result.document, result.coords, options=options)
    svg = to_svg_string(tree)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(svg, encoding="utf-8")
        logger.info("Wrote SVG to %s", out_path)
    else:
        sys.stdout.write(svg + "\n")

    if result.errors and args.strict:
        logger.error("Finished with %d parse error(s)", len(result.errors))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
