"""Version metadata for the Global Nest Tracker plugin."""

__version__ = "1.0.0"
