import argparse
import logging
import sys
from typing import Optional, Sequence

from layerstack.generator import BatchGenerator
from layerstack.render.vips_compat import set_vips_concurrency
from layerstack.utils.config_loader import load_generation_config
from layerstack.utils.errors import LayerStackError
from layerstack.utils.output_dir import prepare_output_dir, validate_sources

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_PARTIAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="layerstack",
        description="Generate unique composite images from layered source directories.",
    )
    parser.add_argument("--env-file", help="dotenv file to load (default: .env in the working directory)")
    parser.add_argument("--source", action="append", dest="sources", help="layer directory, bottom first; repeatable, replaces DIR<n> variables")
    parser.add_argument("--count", type=int, help="number of units to generate (NFT_COUNT)")
    parser.add_argument("--output-dir", help="destination directory or R2 prefix (OUTPUT_DIR)")
    parser.add_argument("--workers", type=int, help="concurrent save workers (SAVE_WORKERS)")
    parser.add_argument("--max-pending", type=int, help="saves allowed in flight before generation waits (SAVE_MAX_PENDING)")
    parser.add_argument("--vips-threads", type=int, help="libvips worker threads, 0 for the libvips default (VIPS_THREADS)")
    parser.add_argument("--storage", choices=["local", "r2"], dest="storage_backend", help="storage backend (STORAGE_BACKEND)")
    parser.add_argument("--continue-on-error", action="store_true", default=None, help="record failing units and keep going")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s: %(message)s")

    try:
        config = load_generation_config(
            env_file=args.env_file,
            overrides={
                "sources": args.sources,
                "count": args.count,
                "output_dir": args.output_dir,
                "workers": args.workers,
                "max_pending": args.max_pending,
                "vips_threads": args.vips_threads,
                "storage_backend": args.storage_backend,
                "continue_on_error": args.continue_on_error,
            },
        )
        set_vips_concurrency(config.vips_threads)
        validate_sources(config.sources)
        if config.storage_backend == "local":
            prepare_output_dir(config.output_dir)

        logging.info("🚀 Generating %s units from %s layer sources", config.count, len(config.sources))
        report = BatchGenerator(config).run()
    except (LayerStackError, ValueError, OSError) as exc:
        logging.error("❌ Program aborted: %s", exc)
        return EXIT_ABORTED
    except Exception as exc:
        logging.exception("❌ Program aborted due to a runtime error: %s", exc)
        return EXIT_ABORTED

    if not report.ok:
        logging.warning("⚠️ %s units failed", len(report.failures))
        return EXIT_PARTIAL
    return EXIT_OK


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
