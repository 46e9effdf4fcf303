"""
Persistence benchmark harness

Runs the same reproducible workload against each configured backend:
- Memory (in-process dict store)
- SQLite
- Qdrant
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional, Sequence

from perfbench.catalog import CATALOG
from perfbench.config import Config
from perfbench.db_clients import BACKENDS, create_adapters
from perfbench.errors import PerfBenchError
from perfbench.models import PairResult
from perfbench.random_values import WorkloadGenerator
from perfbench.runner import BenchmarkRunner
from perfbench.utils import ResultAnalyzer

logger = logging.getLogger(__name__)


class PerfBench:
    """Main benchmark class"""

    def __init__(self, config_path: str = "config.json", backends: Optional[Sequence[str]] = None):
        self.config = Config(config_path)
        self.clients = create_adapters(self.config, backends)
        self.generator = WorkloadGenerator(seed=self.config.seed)
        self.runner = BenchmarkRunner(self.clients, self.generator)
        self.analyzer = ResultAnalyzer(self.config.output_dir)

    def run_benchmarks(self, test_types: Optional[Sequence[str]] = None,
                       entity_count: Optional[int] = None) -> List[PairResult]:
        """Run every selected test type on every selected backend"""
        run_config = self.config.run_config(
            backends=list(self.clients), test_types=test_types, entity_count=entity_count
        )
        return self.runner.run(run_config)

    def report(self, results: List[PairResult]) -> str:
        report = self.analyzer.generate_report(results)
        self.analyzer.save_results(results)
        self.analyzer.save_report(report)
        return report


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="perfbench",
        description="Compare persistence backends on an identical, reproducible workload",
    )
    parser.add_argument("--config", default="config.json", help="configuration file (created if missing)")
    parser.add_argument("--backends", help=f"comma separated subset of: {', '.join(BACKENDS)}")
    parser.add_argument("--tests", help="comma separated test type short names (default: all)")
    parser.add_argument("--count", type=int, help="number of entities per test (overrides config)")
    parser.add_argument("--list", action="store_true", help="list the test types and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def _cancel_handler(runner: BenchmarkRunner):
    """First Ctrl-C finishes the current pair, the second one interrupts"""
    def handler(signum, frame):
        if runner.cancel_requested:
            raise KeyboardInterrupt
        runner.cancel()
    return handler


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.list:
        for test_type in CATALOG.all():
            print(f"{test_type.short_name:<24} {test_type.display_name}")
        return 0

    try:
        bench = PerfBench(args.config, _split(args.backends))
        previous_handler = signal.signal(signal.SIGINT, _cancel_handler(bench.runner))
        try:
            results = bench.run_benchmarks(_split(args.tests), args.count)
        finally:
            signal.signal(signal.SIGINT, previous_handler)
    except PerfBenchError as e:
        logger.error(f"✗ {e}")
        return 2

    print(bench.report(results))
    failed = sum(1 for r in results if not r.succeeded)
    logger.info(f"Benchmark completed. Pairs: {len(results)}, failed: {failed}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
