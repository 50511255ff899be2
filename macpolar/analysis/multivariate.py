"""
Principal component analysis of the sample x variable matrix.
"""

import logging
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from ..config.analysis_config import AnalysisConfig
from .visualization import group_palette, save_figure

logger = logging.getLogger(__name__)


class MultivariateAnalyzer:
    """Performs exploratory PCA on assay samples."""

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def run_pca(self,
                samples: pd.DataFrame,
                variables: List[str],
                output_file: Optional[str] = None,
                log_transform: Optional[bool] = None) -> Dict:
        """
        Run PCA and create the scatterplot.

        Args:
            samples: Prepared sample table
            variables: Measured variable columns used as features
            output_file: Optional file to save the plot
            log_transform: Apply log2(x + 1) first (defaults to config.log_transform)

        Returns:
            Dict with coordinates, explained variance, loadings and the figure
        """
        log_transform = self.config.log_transform if log_transform is None else log_transform

        data = samples.set_index(['Sample', 'Treatment'])[variables].astype(float)

        # Variables without any measurement carry no information; remaining
        # gaps get the variable mean so every sample stays in the plot.
        data = data.dropna(axis=1, how='all')
        data = data.fillna(data.mean())

        X = data.values
        if log_transform:
            if (X < 0).any():
                logger.warning("Negative values present; clipping at 0 before log transform")
            X = np.log2(np.clip(X, 0, None) + 1)

        X_scaled = StandardScaler().fit_transform(X)
        n_components = min(self.config.n_components, X_scaled.shape[0], X_scaled.shape[1])
        reducer = PCA(n_components=n_components)
        X_reduced = reducer.fit_transform(X_scaled)

        groups = data.index.get_level_values('Treatment').astype(str)
        fig = self._create_plot(X_reduced, groups, reducer.explained_variance_ratio_)

        if output_file:
            save_figure(fig, output_file, self.config)

        coordinates = pd.DataFrame(
            X_reduced,
            index=data.index,
            columns=[f'PC{i + 1}' for i in range(n_components)],
        )
        loadings = pd.DataFrame(
            reducer.components_.T,
            index=data.columns,
            columns=coordinates.columns,
        )
        logger.info("PCA explained variance: " +
                    ", ".join(f"{c}={v:.1%}" for c, v in zip(coordinates.columns, reducer.explained_variance_ratio_)))

        return {
            'pca_coordinates': coordinates,
            'explained_variance': reducer.explained_variance_ratio_,
            'loadings': loadings,
            'sample_groups': groups,
            'figure': None if output_file else fig,
        }

    def _create_plot(self, X_reduced: np.ndarray, groups: pd.Index,
                     explained_variance: np.ndarray) -> plt.Figure:
        """Scatter the first two components coloured by treatment group."""
        plt.rcParams.update({
            'font.size': self.config.font_size,
            'axes.titlesize': self.config.font_size + 2,
            'axes.labelsize': self.config.font_size,
            'xtick.labelsize': self.config.font_size,
            'ytick.labelsize': self.config.font_size,
            'legend.fontsize': self.config.font_size - 2,
        })

        colors = group_palette(self.config)
        fig, ax = plt.subplots(figsize=(8, 6))

        second = X_reduced[:, 1] if X_reduced.shape[1] > 1 else np.zeros(len(X_reduced))
        for group in self.config.group_order:
            idx = np.asarray(groups == group)
            if not idx.any():
                continue
            ax.scatter(X_reduced[idx, 0], second[idx], label=group, s=60,
                       color=colors[group], edgecolors='k', linewidth=0.5)

        ax.legend(bbox_to_anchor=(1.0, 1), loc='upper left', frameon=False)
        ax.set_xlabel(f'PC1 ({explained_variance[0]:.1%})')
        if len(explained_variance) > 1:
            ax.set_ylabel(f'PC2 ({explained_variance[1]:.1%})')
        else:
            ax.set_ylabel('PC2')
        ax.set_title(f'{self.config.name} PCA')
        ax.grid(True, alpha=0.3)

        plt.tight_layout()
        return fig
