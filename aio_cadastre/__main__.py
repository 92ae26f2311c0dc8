"""
Command line interface.

```
python -m aio_cadastre serve [--host HOST] [--port PORT] [--static-dir DIR] [--upstream URL]
python -m aio_cadastre load [--url URL] [--page-size N] [--batched] [--out FILE]
```

Options that are not given are read from ``CADASTRE_*`` environment variables
(see ``aio_cadastre.config``).
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from aio_cadastre import proxy
from aio_cadastre.config import Settings
from aio_cadastre.filter import filter_options
from aio_cadastre.loader import LoadResult


__docformat__ = "google"
__all__ = ("main",)


_LOG_FORMAT = (
    "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(module)s:%(funcName)s:%(lineno)d - %(message)s"
)


def main(argv: list[str] | None = None) -> int:
    parser = _parser()
    args = parser.parse_args(argv)

    logger = _get_logger("aio_cadastre", verbose=args.verbose)

    try:
        settings = Settings.from_env()
        settings = _override(settings, args)
    except ValueError as err:
        parser.error(str(err))

    match args.command:
        case "serve":
            proxy.serve(settings, logger=logger)
            return 0
        case "load":
            result = asyncio.run(_load(settings, batched=args.batched, logger=logger))
            _write(result, args.out)
            return 1 if result.is_fallback else 0
        case _:
            parser.print_help()
            return 2


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aio_cadastre", description="Cadastral parcel viewer")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug messages")

    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="serve static files and proxy the feature server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--static-dir", type=Path)
    serve.add_argument("--upstream", help="feature server to forward requests to")

    load = commands.add_parser("load", help="load parcels once, and write them as GeoJSON")
    load.add_argument("--url", help="WFS endpoint")
    load.add_argument("--page-size", type=int)
    load.add_argument("--batched", action="store_true", help="load in pages right away")
    load.add_argument("--out", type=Path, help="output file; defaults to stdout")

    return parser


def _override(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
        "static_dir": getattr(args, "static_dir", None),
        "upstream_url": getattr(args, "upstream", None),
        "source_url": getattr(args, "url", None),
        "page_size": getattr(args, "page_size", None),
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


async def _load(settings: Settings, batched: bool, logger: logging.Logger) -> LoadResult:
    async with settings.loader(logger=logger) as loader:
        result = await loader.load(batched=batched)

    options = filter_options(result.collection)
    logger.info(
        f"{result!r}: "
        + ", ".join(f"{len(values)} {dim}s" for dim, values in options.items())
    )

    return result


def _write(result: LoadResult, out: Path | None) -> None:
    text = json.dumps(result.collection.geojson, ensure_ascii=False)

    if out is None:
        sys.stdout.write(text)
        sys.stdout.write("\n")
        return

    out.write_text(text, encoding="utf-8")


def _get_logger(name: str, verbose: bool) -> logging.Logger:
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    return logger


if __name__ == "__main__":
    sys.exit(main())
