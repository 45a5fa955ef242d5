"""
promosync - content synchronization engine for a wrestling promotion simulation.
"""

__version__ = "0.1.0"
