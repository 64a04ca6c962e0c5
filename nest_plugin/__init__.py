"""Global Nest Tracker plugin internals."""
