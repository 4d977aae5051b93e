"""
matplotlib_config.py - Backend selection and plot defaults for trajectory plots.

Call configure_matplotlib_for_backend() before the first pyplot import in
servers, demos and tests so figures render without a display.
"""
from __future__ import annotations

import os

import matplotlib

PLOT_RC_PARAMS = {
    'figure.dpi': 100,
    'savefig.dpi': 150,
    'figure.figsize': [10, 6],
    'font.size': 10,
    'axes.grid': True,
    'grid.alpha': 0.3,
}


def is_headless() -> bool:
    return os.environ.get('DISPLAY') is None and os.name != 'nt'


def configure_matplotlib_for_backend(force_headless: bool = False) -> str:
    """
    Switch to the non-interactive Agg backend when there is no display
    (or when forced), and apply the plot defaults.

    Returns:
        Name of the active backend
    """
    if force_headless or is_headless():
        matplotlib.use('Agg')
    matplotlib.rcParams.update(PLOT_RC_PARAMS)
    return matplotlib.get_backend()
