"""
Utility functions for the persistence benchmark harness
"""

import copy
import json
import os
from collections import OrderedDict
from typing import List, Dict, Any, Optional, Tuple
from datetime import datetime
import logging

from perfbench.models import PairResult
from perfbench.random_values import DEFAULT_SEED

logger = logging.getLogger(__name__)

KNOWN_BACKENDS = ('memory', 'sqlite', 'qdrant')
DATABASE_KEYS = ('host', 'port', 'password', 'database', 'collection')

_DEFAULT_CONFIG: Dict[str, Any] = {
    'memory': {},
    'sqlite': {
        'database': 'perfbench.sqlite3'
    },
    'qdrant': {
        'host': 'localhost',
        'port': 6333,
        'collection': 'perfbench'
    },
    'benchmark_settings': {
        'entity_count': 10000,
        'seed': DEFAULT_SEED,
        'test_types': [],
        'backends': ['memory', 'sqlite'],
        'output_dir': 'results'
    }
}


def default_config() -> Dict[str, Any]:
    """Get default configuration"""
    return copy.deepcopy(_DEFAULT_CONFIG)


def phase_totals(results: List[PairResult]) -> "OrderedDict[Tuple[str, str], Dict[str, int]]":
    """Accumulate elapsed nanos per phase label for every (test type, backend)"""
    totals: "OrderedDict[Tuple[str, str], Dict[str, int]]" = OrderedDict()
    for result in results:
        phases = totals.setdefault((result.test_type, result.backend_name), OrderedDict())
        for phase in result.phases:
            phases[phase.label] = phases.get(phase.label, 0) + phase.elapsed_nanos
    return totals


class ResultAnalyzer:
    """Save benchmark results and render the comparison report"""

    def __init__(self, output_dir: str = "results"):
        self.output_dir = output_dir
        os.makedirs(output_dir, exist_ok=True)

    def save_results(self, results: List[PairResult], filename: Optional[str] = None) -> str:
        """Save pair results to a JSON file"""
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"perf_results_{timestamp}.json"

        output_path = os.path.join(self.output_dir, filename)

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump([result.to_dict() for result in results], f, indent=2, ensure_ascii=False)

        logger.info(f"Results saved to {output_path}")
        return output_path

    def generate_report(self, results: List[PairResult]) -> str:
        """Generate the per test type comparison report"""
        total_pairs = len(results)
        failed = [r for r in results if not r.succeeded]

        report = f"""
=== Persistence Benchmark Report ===

Summary:
- Pairs: {total_pairs}
- Completed: {total_pairs - len(failed)}
- Failed: {len(failed)}
"""

        totals = phase_totals(results)
        test_types: "OrderedDict[str, List[str]]" = OrderedDict()
        for test_type, backend in totals:
            test_types.setdefault(test_type, []).append(backend)

        for test_type, backends in test_types.items():
            labels: List[str] = []
            for backend in backends:
                for label in totals[(test_type, backend)]:
                    if label not in labels:
                        labels.append(label)

            report += f"\n{test_type} (ms):\n"
            width = max([len(label) for label in labels] + [len("phase")])
            report += "  " + "phase".ljust(width) + "".join(f"{b:>14}" for b in backends) + "\n"
            for label in labels:
                row = "  " + label.ljust(width)
                for backend in backends:
                    nanos = totals[(test_type, backend)].get(label)
                    row += f"{nanos / 1_000_000:>14.2f}" if nanos is not None else f"{'-':>14}"
                report += row + "\n"

        if failed:
            report += "\nFailures:\n"
            for i, result in enumerate(failed, 1):
                report += f"{i}. {result.backend_name} / {result.test_type}: {result.error}\n"

        return report

    def save_report(self, report: str, filename: Optional[str] = None) -> str:
        """Save report to file"""
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"perf_report_{timestamp}.txt"

        output_path = os.path.join(self.output_dir, filename)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(report)

        logger.info(f"Report saved to {output_path}")
        return output_path


class ConfigValidator:
    """Validate configuration files"""

    @staticmethod
    def validate_config(config_data: Dict[str, Any]) -> List[str]:
        """Validate configuration data and return list of issues"""
        issues = []

        for db_name in KNOWN_BACKENDS:
            if db_name not in config_data:
                issues.append(f"Missing configuration for {db_name}")
                continue

            db_config = config_data[db_name]
            if not isinstance(db_config, dict):
                issues.append(f"Configuration for {db_name} must be an object")
                continue

            unknown = sorted(set(db_config) - set(DATABASE_KEYS))
            if unknown:
                issues.append(f"Unknown keys for {db_name}: {', '.join(unknown)}")

            if 'port' in db_config:
                if not isinstance(db_config['port'], int):
                    issues.append(f"Invalid port for {db_name}")
                elif db_name == 'qdrant' and not (1 <= db_config['port'] <= 65535):
                    issues.append(f"Invalid port range for {db_name}: {db_config['port']}")

        sqlite_config = config_data.get('sqlite')
        if isinstance(sqlite_config, dict) and not sqlite_config.get('database'):
            issues.append("Missing database path for sqlite")

        if 'benchmark_settings' not in config_data:
            issues.append("Missing benchmark_settings configuration")
            return issues

        settings = config_data['benchmark_settings']

        entity_count = settings.get('entity_count')
        if not isinstance(entity_count, int) or isinstance(entity_count, bool) or entity_count <= 0:
            issues.append("Invalid entity_count in benchmark_settings")

        seed = settings.get('seed')
        if not isinstance(seed, int) or not -(1 << 63) <= seed < (1 << 63):
            issues.append("Invalid seed in benchmark_settings: must be a signed 64-bit integer")

        for key in ('test_types', 'backends'):
            value = settings.get(key)
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                issues.append(f"{key} in benchmark_settings must be a list of names")

        for backend in settings.get('backends') or []:
            if backend not in KNOWN_BACKENDS:
                issues.append(f"Unknown backend in benchmark_settings: {backend}")

        return issues

    @staticmethod
    def fix_common_issues(config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Fill missing sections and keys with defaults"""
        fixed_config = copy.deepcopy(config_data)

        for section, default_section in default_config().items():
            if section not in fixed_config:
                fixed_config[section] = default_section
            elif isinstance(fixed_config[section], dict):
                for key, value in default_section.items():
                    if key not in fixed_config[section]:
                        fixed_config[section][key] = value

        return fixed_config
