"""
Figures for assay analysis results: per-variable bar plots with significance
brackets and clustered heatmaps.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from tqdm import tqdm

from ..config.analysis_config import AnalysisConfig
from ..exceptions import ExportError
from .statistics import format_p_value

logger = logging.getLogger(__name__)


def group_palette(config: AnalysisConfig) -> Dict[str, Tuple]:
    """Colour per treatment group, configured colours win over the default palette."""
    default = sns.color_palette('Paired', len(config.group_order))
    colors = dict(zip(config.group_order, default))
    if config.palette:
        colors.update({g: matplotlib.colors.to_rgb(c) for g, c in config.palette.items()})
    return colors


def save_figure(fig: plt.Figure, output_file, config: AnalysisConfig) -> Path:
    """Write a figure to disk and close it."""
    path = Path(output_file)
    kwargs = {}
    if path.suffix.lower() in ('.tif', '.tiff'):
        kwargs['pil_kwargs'] = {'compression': 'tiff_lzw'}
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=config.figure_dpi, bbox_inches='tight', **kwargs)
    except OSError as e:
        raise ExportError(f"Could not write figure {path}: {e}") from e
    finally:
        plt.close(fig)
    logger.debug(f"Saved figure {path}")
    return path


def safe_filename(name: str) -> str:
    """Turn a variable name such as 'IL-1β (pg/mL)' into a file-system safe stem."""
    stem = re.sub(r'[^\w\-.]+', '_', str(name), flags=re.UNICODE).strip('_.')
    return stem or 'variable'


def bracket_layout(data_top: float, n_brackets: int, step: float,
                   scale: str = 'linear') -> Tuple[List[float], List[float], float]:
    """
    Vertical positions of stacked significance brackets.

    Args:
        data_top: Highest plotted value (bar + error bar or raw point)
        n_brackets: Number of brackets to stack
        step: Spacing between brackets as a fraction of data_top
        scale: 'linear' or 'log' y axis

    Returns:
        (bracket heights, bracket tip heights, y-axis upper limit)
    """
    if not np.isfinite(data_top) or data_top <= 0:
        data_top = 1.0

    if scale == 'log':
        factor = 1.0 + 2 * step
        heights = [data_top * factor ** (i + 1) for i in range(n_brackets)]
        tips = [h / factor ** 0.25 for h in heights]
        top = data_top * factor ** (n_brackets + 1.5)
    else:
        spacing = step * data_top
        heights = [data_top + spacing * (i + 1) for i in range(n_brackets)]
        tips = [h - spacing * 0.25 for h in heights]
        top = data_top + spacing * (n_brackets + 1.5)
    return heights, tips, top


def p_label(p_display: str) -> str:
    return f"p {p_display}" if p_display.startswith('<') else f"p = {p_display}"


class AnalysisVisualizer:
    """Creates figures for one dataset."""

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def _set_fonts(self):
        plt.rcParams.update({
            'font.size': self.config.font_size,
            'axes.titlesize': self.config.font_size + 2,
            'axes.labelsize': self.config.font_size,
            'xtick.labelsize': self.config.font_size - 2,
            'ytick.labelsize': self.config.font_size,
            'legend.fontsize': self.config.font_size,
        })

    def brackets_for(self, matched: pd.DataFrame, variable: str) -> pd.DataFrame:
        """Retained comparisons of one variable that get a bracket, shortest span first."""
        rows = matched[matched['variable'] == variable]
        if self.config.annotate_only_significant:
            rows = rows[rows['p_value'] < self.config.alpha]
        order = {g: i for i, g in enumerate(self.config.group_order)}
        rows = rows.assign(
            x1=rows['group1'].map(order),
            x2=rows['group2'].map(order),
        )
        rows = rows.assign(span=(rows['x2'] - rows['x1']).abs())
        return rows.sort_values(['span', 'x1']).reset_index(drop=True)

    def plot_variable(self,
                      samples: pd.DataFrame,
                      variable: str,
                      stats: Dict[str, pd.DataFrame],
                      matched: pd.DataFrame,
                      interaction_p: Optional[str] = None,
                      output_file: Optional[str] = None) -> Optional[plt.Figure]:
        """
        Bar plot of group means with SEM error bars, jittered replicate points
        and brackets for the retained comparisons.

        Args:
            samples: Prepared sample table
            variable: Variable to plot
            stats: Output of StatisticalAnalyzer.group_means
            matched: Retained comparisons (all variables)
            interaction_p: Display string of the Starting x Exposure p-value
            output_file: Optional file to save the plot

        Returns:
            The figure when it was not saved
        """
        self._set_fonts()
        groups = self.config.group_order
        colors = group_palette(self.config)
        means = stats['mean'][variable].reindex(groups)
        sems = stats['sem'][variable].reindex(groups).fillna(0)
        x = np.arange(len(groups))

        fig, ax = plt.subplots(figsize=(max(6, 0.9 * len(groups)), 5))
        ax.bar(x, means.values, yerr=sems.values, capsize=4, width=0.7,
               color=[colors[g] for g in groups], edgecolor='black', linewidth=0.8,
               error_kw={'elinewidth': 1, 'ecolor': 'black'}, zorder=1)
        sns.stripplot(data=samples.assign(Treatment=samples['Treatment'].astype(str)),
                      x='Treatment', y=variable, order=groups,
                      color='black', size=4, jitter=0.15, alpha=0.8, ax=ax, zorder=2)

        values = samples[variable].astype(float)
        data_top = np.nanmax([np.nanmax((means + sems).values), values.max()])

        brackets = self.brackets_for(matched, variable)
        heights, tips, top = bracket_layout(data_top, len(brackets),
                                            self.config.bracket_step, self.config.y_scale)
        for row, height, tip in zip(brackets.itertuples(index=False), heights, tips):
            x1, x2 = sorted((row.x1, row.x2))
            ax.plot([x1, x1, x2, x2], [tip, height, height, tip], color='black', linewidth=0.8)
            ax.text((x1 + x2) / 2, height, p_label(row.p_display),
                    ha='center', va='bottom', fontsize=self.config.font_size - 4)

        if self.config.y_scale == 'log':
            ax.set_yscale('log')
        else:
            ax.set_ylim(bottom=min(0, values.min()))
        ax.set_ylim(top=self.config.y_max if self.config.y_max is not None else top)

        ax.set_xticks(x)
        ax.set_xticklabels(groups, rotation=45, ha='right')
        ax.set_xlabel('')
        ax.set_ylabel(self.config.y_axis_label)
        title = variable
        if interaction_p is not None:
            title += f"\nInteraction {p_label(interaction_p)}"
        ax.set_title(title)
        sns.despine(ax=ax)
        plt.tight_layout()

        if output_file:
            save_figure(fig, output_file, self.config)
            return None
        return fig

    def plot_all_variables(self,
                           samples: pd.DataFrame,
                           variables: List[str],
                           stats: Dict[str, pd.DataFrame],
                           posthoc: Dict,
                           output_dir: str) -> Dict[str, str]:
        """Write one bar plot per variable into ``output_dir``."""
        output_dir = Path(output_dir)
        output_files = {}
        interaction = posthoc['interaction_p']
        for variable in tqdm(variables, desc='Bar plots', disable=len(variables) < 10):
            label = None
            if variable in interaction.index:
                label = format_p_value(interaction[variable], self.config.p_display_floor,
                                       self.config.p_decimals)
            output_file = output_dir / f"{safe_filename(variable)}.{self.config.figure_format}"
            self.plot_variable(samples, variable, stats, posthoc['matched'],
                               interaction_p=label, output_file=str(output_file))
            output_files[variable] = str(output_file)
        logger.info(f"Saved {len(output_files)} bar plots to {output_dir}")
        return output_files

    def plot_group_heatmap(self, means: pd.DataFrame,
                           output_file: Optional[str] = None) -> Optional[plt.Figure]:
        """
        Hierarchically clustered heatmap of z-scored group-mean profiles.

        Rows are variables, columns treatment groups in canonical order.
        """
        self._set_fonts()
        profile = means.T
        spread = profile.std(axis=1, ddof=1)
        profile = profile[(spread > 0) & spread.notna()]
        if profile.empty:
            logger.warning("No variable varies across groups; skipping group heatmap")
            return None
        z_scores = profile.sub(profile.mean(axis=1), axis=0).div(profile.std(axis=1, ddof=1), axis=0)

        cg = sns.clustermap(
            z_scores,
            row_cluster=len(z_scores) > 1,
            col_cluster=False,
            cmap='RdBu_r',
            center=0,
            figsize=(8, max(4, 0.35 * len(z_scores) + 2)),
            cbar_kws={'label': 'Group mean (Z-score)'},
            dendrogram_ratio=0.15,
        )
        cg.ax_heatmap.set_xlabel('')
        cg.ax_heatmap.set_ylabel('')
        plt.setp(cg.ax_heatmap.get_xticklabels(), rotation=45, ha='right')
        cg.figure.suptitle(f'{self.config.name}: group mean profiles', y=1.02)

        if output_file:
            save_figure(cg.figure, output_file, self.config)
            return None
        return cg.figure

    def plot_correlation_heatmap(self, samples: pd.DataFrame, variables: List[str],
                                 output_file: Optional[str] = None) -> Optional[plt.Figure]:
        """Clustered Spearman correlation heatmap between variables across samples."""
        self._set_fonts()
        corr = samples[variables].astype(float).corr(method='spearman')
        corr = corr.dropna(how='all').dropna(axis=1, how='all')
        if len(corr) < 2:
            logger.warning("Fewer than two variables with defined correlations; skipping correlation heatmap")
            return None

        cg = sns.clustermap(
            corr.fillna(0),
            cmap='RdBu_r',
            vmin=-1,
            vmax=1,
            figsize=(max(6, 0.35 * len(corr) + 3),) * 2,
            cbar_kws={'label': 'Spearman r'},
            dendrogram_ratio=0.15,
        )
        cg.figure.suptitle(f'{self.config.name}: variable correlation', y=1.02)

        if output_file:
            save_figure(cg.figure, output_file, self.config)
            return None
        return cg.figure
