"""
Smart Bill - deterministic bill calculation engine

Computes itemized subtotals, discounts, charges, taxes and totals from a
declarative description of a sale, with a CLI for JSON payloads.
"""

__version__ = "0.1.0"
__author__ = "Dinuka Abeysinghe"
__email__ = "integration-qa@grubtech.com"

from . import billing
from . import utils

__all__ = ["billing", "utils"]
