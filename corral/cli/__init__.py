"""
CLI Module for Corral

Usage:
    python -m corral.cli.corralctl load --project default --name c1
"""

from .corralctl import CorralCLI, main as corralctl_main

__all__ = [
    'CorralCLI',
    'corralctl_main',
]
