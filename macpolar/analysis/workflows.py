"""
End-to-end analysis workflows and CLI interface.

Usage from the command line

# Everything for one dataset
macpolar-analysis full --config config/gene_panel.yaml

# Statistics only, different input table and output directory
macpolar-analysis stats --config config/cytokine_panel.yaml \
    --data-file data/cytokines_batch2.csv --output-dir results/batch2
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from ..config.analysis_config import AnalysisConfig
from ..exceptions import MacpolarError
from .core import AnalysisEngine

logger = logging.getLogger(__name__)


class AnalysisWorkflow:
    """High-level workflow orchestrator for one dataset."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """Initialize workflow with configuration."""
        self.config = config or AnalysisConfig()
        self.engine = AnalysisEngine(self.config)

    def _output_dir(self, output_dir: Optional[str]) -> Path:
        output_dir = Path(output_dir) if output_dir else self.config.dataset_output_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        return output_dir

    def run_statistical_workflow(self, output_dir: Optional[str] = None,
                                 data_file: Optional[str] = None) -> str:
        """
        Group statistics, ANOVA and post-hoc comparisons written to a workbook.

        Returns:
            str: Path to the workbook
        """
        logger.info("=== Statistical Analysis Workflow ===")
        output_dir = self._output_dir(output_dir)

        self.engine.load_data(data_file)
        self.engine.compute_group_statistics()
        self.engine.run_posthoc()
        workbook = self.engine.export_tables(str(output_dir / f"{self.config.name}_summary.xlsx"))

        logger.info(f"Statistical analysis complete. Results saved to {workbook}")
        return workbook

    def run_plot_workflow(self, output_dir: Optional[str] = None,
                          data_file: Optional[str] = None) -> Dict[str, str]:
        """Per-variable bar plots with significance brackets."""
        logger.info("=== Bar Plot Workflow ===")
        output_dir = self._output_dir(output_dir)

        self.engine.load_data(data_file)
        return self.engine.generate_bar_plots(str(output_dir / 'figures'))

    def run_pca_workflow(self, output_dir: Optional[str] = None,
                         data_file: Optional[str] = None) -> str:
        """PCA scatterplot of all samples."""
        logger.info("=== PCA Analysis Workflow ===")
        output_dir = self._output_dir(output_dir)

        self.engine.load_data(data_file)
        pca_file = output_dir / f"pca.{self.config.figure_format}"
        self.engine.run_pca_analysis(str(pca_file))

        logger.info(f"PCA analysis complete. Plot saved to {pca_file}")
        return str(pca_file)

    def run_heatmap_workflow(self, output_dir: Optional[str] = None,
                             data_file: Optional[str] = None) -> Dict[str, str]:
        """Clustered group-mean and correlation heatmaps."""
        logger.info("=== Heatmap Workflow ===")
        output_dir = self._output_dir(output_dir)

        self.engine.load_data(data_file)
        return self.engine.generate_heatmaps(str(output_dir))

    def run_export_workflow(self, output_dir: Optional[str] = None,
                            data_file: Optional[str] = None) -> str:
        """Mean ± SEM workbook without the post-hoc sheets."""
        logger.info("=== Table Export Workflow ===")
        output_dir = self._output_dir(output_dir)

        self.engine.load_data(data_file)
        self.engine.compute_group_statistics()
        return self.engine.export_tables(str(output_dir / f"{self.config.name}_summary.xlsx"))

    def run_full_analysis_workflow(self, output_dir: Optional[str] = None,
                                   data_file: Optional[str] = None) -> Dict[str, str]:
        """
        Run complete analysis workflow.

        Returns:
            Dict with paths to all output files
        """
        logger.info(f"=== Full Analysis Workflow: {self.config.name} ===")
        output_dir = self._output_dir(output_dir)
        results = self.engine.run_full_analysis(str(output_dir), data_file)

        fmt = self.config.figure_format
        output_files = {
            'workbook': results['workbook'],
            'pca_plot': str(output_dir / f"pca.{fmt}"),
            'figures_dir': str(output_dir / 'figures'),
            'analysis_summary': str(output_dir / "analysis_summary.json"),
        }
        output_files.update(results['heatmaps'])
        return output_files


WORKFLOWS = {
    'stats': AnalysisWorkflow.run_statistical_workflow,
    'plots': AnalysisWorkflow.run_plot_workflow,
    'pca': AnalysisWorkflow.run_pca_workflow,
    'heatmap': AnalysisWorkflow.run_heatmap_workflow,
    'export': AnalysisWorkflow.run_export_workflow,
    'full': AnalysisWorkflow.run_full_analysis_workflow,
}


def setup_logging(verbose: bool = False):
    """Set up basic logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Macrophage polarization assay analysis')
    parser.add_argument('workflow', choices=sorted(WORKFLOWS),
                        help='Analysis workflow to run')
    parser.add_argument('--config', '-c', required=True,
                        help='Dataset configuration file (YAML)')
    parser.add_argument('--output-dir', '-o',
                        help='Output directory (defaults to <output_dir>/<name> from the config)')
    parser.add_argument('--data-file',
                        help='Input table overriding data_file from the config')
    parser.add_argument('--figure-format',
                        help='Figure file format, e.g. tiff, png, pdf')
    parser.add_argument('--design', choices=['repeated', 'independent'],
                        help='ANOVA design overriding the config')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')
    return parser


def main(argv=None) -> int:
    """Command-line interface for the assay analysis."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = AnalysisConfig.from_file(args.config)
        if args.figure_format:
            config.figure_format = args.figure_format.lstrip('.')
        if args.design:
            config.design = args.design

        workflow = AnalysisWorkflow(config)
        result = WORKFLOWS[args.workflow](workflow, args.output_dir, args.data_file)
        logger.info(f"{args.workflow} results: {result}")
    except (MacpolarError, ValueError, FileNotFoundError) as e:
        logger.error(f"Error running {args.workflow} workflow: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
