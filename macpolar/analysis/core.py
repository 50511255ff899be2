"""
Core analysis engine for one assay dataset.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ..config.analysis_config import AnalysisConfig
from .dataloading import AssayDataLoader, GROUPING_COLUMNS
from .export import ResultsExporter
from .multivariate import MultivariateAnalyzer
from .posthoc import PostHocAnalyzer
from .statistics import StatisticalAnalyzer
from .visualization import AnalysisVisualizer

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """
    Main engine for analysing a gene, cytokine or metabolic assay dataset.

    This class orchestrates the analysis of one dataset:
    1. Loading the sample table and deriving treatment groups
    2. Group means / SEM and pairwise group differences
    3. Repeated-measures ANOVA with Fisher LSD post-hoc comparisons
    4. Bar plots, PCA and clustered heatmaps
    5. Spreadsheet export
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """Initialize analysis engine with configuration."""
        self.config = config or AnalysisConfig()

        # Initialize components
        self.data_loader = AssayDataLoader(self.config)
        self.stats_analyzer = StatisticalAnalyzer(self.config)
        self.posthoc_analyzer = PostHocAnalyzer(self.config)
        self.multivariate = MultivariateAnalyzer(self.config)
        self.visualizer = AnalysisVisualizer(self.config)
        self.exporter = ResultsExporter(self.config)

        # Data storage
        self.samples: Optional[pd.DataFrame] = None
        self.variables: List[str] = []
        self.group_stats: Optional[Dict[str, pd.DataFrame]] = None
        self.differences: Optional[pd.DataFrame] = None
        self.posthoc: Optional[Dict] = None

    def load_data(self, data_file: Optional[str] = None) -> pd.DataFrame:
        """
        Load the sample table.

        Args:
            data_file: Path to the table (defaults to config.data_file)

        Returns:
            pd.DataFrame: prepared samples
        """
        logger.info(f"Loading dataset '{self.config.name}'...")
        self.samples = self.data_loader.load_samples(data_file)
        self.variables = [c for c in self.samples.columns if c not in GROUPING_COLUMNS]
        self._reset_results()
        return self.samples

    def set_samples(self, samples: pd.DataFrame) -> pd.DataFrame:
        """Use an already loaded table (raw layout, prepared like a file)."""
        self.samples = self.data_loader.prepare_samples(samples)
        self.variables = [c for c in self.samples.columns if c not in GROUPING_COLUMNS]
        self._reset_results()
        return self.samples

    def _reset_results(self):
        self.group_stats = None
        self.differences = None
        self.posthoc = None

    def _require_samples(self):
        if self.samples is None:
            raise ValueError("Must load data first")

    def compute_group_statistics(self) -> Dict[str, pd.DataFrame]:
        """Group means, SEM and counts, then the pairwise differences."""
        self._require_samples()
        logger.info("Computing group means and pairwise differences...")
        self.group_stats = self.stats_analyzer.group_means(self.samples, self.variables)
        self.differences = self.stats_analyzer.pairwise_differences(self.group_stats['mean'])
        return self.group_stats

    def run_posthoc(self) -> Dict:
        """Run ANOVA and post-hoc comparisons for every variable."""
        if self.group_stats is None:
            self.compute_group_statistics()
        logger.info(f"Running {self.config.design} ANOVA with Fisher LSD post-hoc tests...")
        self.posthoc = self.posthoc_analyzer.run(
            self.samples, self.variables, self.differences, self.group_stats['n']
        )
        return self.posthoc

    def generate_bar_plots(self, output_dir: Optional[str] = None) -> Dict[str, str]:
        """One bar plot per variable with significance brackets."""
        if self.posthoc is None:
            self.run_posthoc()
        output_dir = output_dir or str(self.config.dataset_output_dir / 'figures')
        logger.info("Generating bar plots...")
        return self.visualizer.plot_all_variables(
            self.samples, self.variables, self.group_stats, self.posthoc, output_dir
        )

    def run_pca_analysis(self, output_file: Optional[str] = None) -> Dict:
        """PCA of samples across all variables."""
        self._require_samples()
        logger.info("Running PCA analysis...")
        return self.multivariate.run_pca(self.samples, self.variables, output_file)

    def generate_heatmaps(self, output_dir: Optional[str] = None) -> Dict[str, str]:
        """Clustered group-mean and variable-correlation heatmaps."""
        if self.group_stats is None:
            self.compute_group_statistics()
        output_dir = Path(output_dir or self.config.dataset_output_dir)
        fmt = self.config.figure_format
        logger.info("Generating heatmaps...")

        group_file = output_dir / f"group_heatmap.{fmt}"
        corr_file = output_dir / f"correlation_heatmap.{fmt}"
        self.visualizer.plot_group_heatmap(self.group_stats['mean'], str(group_file))
        self.visualizer.plot_correlation_heatmap(self.samples, self.variables, str(corr_file))

        # Either heatmap is skipped when the data cannot support it
        return {key: str(path) for key, path in
                [('group_heatmap', group_file), ('correlation_heatmap', corr_file)]
                if path.exists()}

    def export_tables(self, output_file: Optional[str] = None) -> str:
        """Write the mean ± SEM workbook (with post-hoc sheets when available)."""
        if self.group_stats is None:
            self.compute_group_statistics()
        output_file = output_file or str(self.config.dataset_output_dir / f"{self.config.name}_summary.xlsx")
        summary = self.stats_analyzer.summary_table(self.group_stats)
        path = self.exporter.write_workbook(
            output_file, summary, self.group_stats, self.differences, self.posthoc
        )
        return str(path)

    def run_full_analysis(self, output_dir: Optional[str] = None,
                          data_file: Optional[str] = None) -> Dict:
        """
        Run complete analysis workflow.

        Args:
            output_dir: Output directory (defaults to config.output_dir/<name>)
            data_file: Optional override of config.data_file

        Returns:
            Dict with all analysis results and output paths
        """
        output_dir = Path(output_dir) if output_dir else self.config.dataset_output_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        fmt = self.config.figure_format

        results = {}

        # 1. Load data
        logger.info("=== Step 1: Loading Data ===")
        self.load_data(data_file)

        # 2. Group statistics and differences
        logger.info("=== Step 2: Group Statistics ===")
        results['group_stats'] = self.compute_group_statistics()
        results['differences'] = self.differences

        # 3. ANOVA and post-hoc comparisons
        logger.info("=== Step 3: ANOVA / Post-hoc ===")
        results['posthoc'] = self.run_posthoc()

        # 4. Bar plots
        logger.info("=== Step 4: Bar Plots ===")
        results['bar_plots'] = self.generate_bar_plots(str(output_dir / 'figures'))

        # 5. PCA
        logger.info("=== Step 5: PCA ===")
        results['pca'] = self.run_pca_analysis(str(output_dir / f"pca.{fmt}"))

        # 6. Heatmaps
        logger.info("=== Step 6: Heatmaps ===")
        results['heatmaps'] = self.generate_heatmaps(str(output_dir))

        # 7. Tables
        logger.info("=== Step 7: Export Tables ===")
        results['workbook'] = self.export_tables(str(output_dir / f"{self.config.name}_summary.xlsx"))

        # 8. Summary report
        results['summary'] = self._generate_analysis_summary(results, output_dir)

        logger.info(f"Full analysis of '{self.config.name}' complete!")
        return results

    def _generate_analysis_summary(self, results: Dict, output_dir: Path) -> Dict:
        """Write a JSON summary of the run."""
        posthoc = results['posthoc']
        matched = posthoc['matched']
        summary = {
            'dataset': self.config.name,
            'data_summary': {
                'samples': len(self.samples),
                'variables': len(self.variables),
                'group_sizes': self.samples.groupby('Treatment', observed=False).size().to_dict(),
            },
            'statistical_summary': {
                'design': self.config.design,
                'comparisons': len(posthoc['comparisons']),
                'retained_comparisons': len(matched),
                'significant_retained': int((matched['p_value'] < self.config.alpha).sum()),
                'significant_interactions': int((posthoc['interaction_p'] < self.config.alpha).sum()),
            },
            'pca_explained_variance': list(results['pca']['explained_variance']),
            'outputs': {
                'bar_plots': len(results['bar_plots']),
                'heatmaps': results['heatmaps'],
                'workbook': results['workbook'],
            },
        }
        self.exporter.write_summary_json(str(output_dir / "analysis_summary.json"), summary)
        return summary
