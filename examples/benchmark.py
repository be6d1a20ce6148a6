"""Time pulling rows from a shuffled group of Parquet files.

Usage::

    python examples/benchmark.py shards/*.parquet --chunk-size 512 --rows 10000
"""

import argparse
import logging
import sys
import time

from pqloader import ParquetGroupReader

logger = logging.getLogger("pqloader.benchmark")


def configure_logging(level: int = logging.INFO) -> None:
    """Configure logging to write to stderr."""
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pqloader-benchmark",
        description="Measure shuffled row throughput over Parquet files.",
    )
    parser.add_argument("files", nargs="+", help="Parquet files to read")
    parser.add_argument("--chunk-size", type=int, default=512, help="Rows per chunk (default: 512)")
    parser.add_argument("--rows", type=int, default=10000, help="Rows to pull (default: 10000)")
    parser.add_argument("--seed", type=int, default=None, help="Shuffle seed (default: random)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser


def main() -> int:
    args = create_parser().parse_args()
    configure_logging(getattr(logging, args.log_level))

    with ParquetGroupReader(args.files) as reader:
        logger.info("%d files, %d rows", len(reader.readers), reader.get_rows_count())
        iterator = reader.get_iterator(shuffle=True, chunk_size=args.chunk_size, seed=args.seed)

        start = time.perf_counter()
        count = 0
        for _ in iterator:
            count += 1
            if count >= args.rows:
                break
        elapsed = time.perf_counter() - start
        iterator.close()

    logger.info("pulled %d rows in %.3fs (%.0f rows/s)", count, elapsed, count / elapsed if elapsed else 0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
