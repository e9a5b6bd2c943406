"""tripcache - unified request/cache layer for the travel planner."""

__version__ = "0.1.0"
