"""
Home Pricing Package

Pricing and selection-aggregation core for the home configurator.
Derives buyer prices from admin cost data and totals a buyer's selections
the same way for the live preview and the authoritative save.
"""

__version__ = "1.0.0"
