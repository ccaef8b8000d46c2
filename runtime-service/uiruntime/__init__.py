"""
JSON app document runtime: parse, render and run declarative app definitions.
"""

__version__ = "0.1.0"
