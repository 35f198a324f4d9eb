"""
Data-access layer for the `li` LinkedIn command-line client.
"""

__version__ = "0.3.0"
