#!/usr/bin/env python3
"""
Run the full analysis for the gene, cytokine and metabolic assay datasets.

Usage examples:
    # All shipped dataset configs
    python run_all_datasets.py

    # Only some datasets, PNG figures into another directory
    python run_all_datasets.py gene_panel cytokine_panel --figure-format png --output results/png
"""

import argparse
import sys
import time
from pathlib import Path

import yaml

from macpolar.analysis.workflows import AnalysisWorkflow, setup_logging
from macpolar.config import AnalysisConfig, MACPOLAR_ROOT
from macpolar.exceptions import MacpolarError

CONFIG_DIR = MACPOLAR_ROOT / 'config'
DATASETS = ['gene_panel', 'cytokine_panel', 'metabolic_assay']


def run_dataset(name: str, args) -> bool:
    """Run the full workflow for one dataset config."""
    print("=" * 60)
    print(f"Dataset: {name}")
    print("=" * 60)

    start_time = time.time()
    try:
        config = AnalysisConfig.from_file(str(CONFIG_DIR / f"{name}.yaml"))
        if args.figure_format:
            config.figure_format = args.figure_format
        output_dir = Path(args.output) / name if args.output else None

        output_files = AnalysisWorkflow(config).run_full_analysis_workflow(
            str(output_dir) if output_dir else None
        )
    except (MacpolarError, ValueError, FileNotFoundError, yaml.YAMLError) as e:
        print(f"\nERROR in {name}: {e}")
        return False

    elapsed = time.time() - start_time
    print(f"Time elapsed: {elapsed:.1f} seconds")
    for key, path in output_files.items():
        print(f"  {key}: {path}")
    return True


def main():
    parser = argparse.ArgumentParser(description='Run all assay analyses')
    parser.add_argument('datasets', nargs='*', default=DATASETS, choices=DATASETS,
                        help='Datasets to analyse (default: all)')
    parser.add_argument('--output', help='Output root directory (default: from each config)')
    parser.add_argument('--figure-format', help='Figure file format (default: from each config)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    args = parser.parse_args()

    setup_logging(args.verbose)

    # Datasets are independent; a failure in one does not stop the others
    failed = [name for name in args.datasets if not run_dataset(name, args)]
    if failed:
        print(f"\nFailed datasets: {', '.join(failed)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
