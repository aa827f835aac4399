"""Event-driven notification dispatcher"""

__version__ = "1.0.0"
