"""
floorlink: floor-plan maps and the stores that occupy their features.
"""

__version__ = "0.1.0"
