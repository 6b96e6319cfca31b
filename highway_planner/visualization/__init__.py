"""Visualization module for highway planning runs."""

from .dashboard import create_dashboard, plot_trajectory

__all__ = ['create_dashboard', 'plot_trajectory']
