"""Version information for DocumentDB Python SDK"""

__version__ = "0.1.0"
