"""
javactx - semantic context engine for Java/Spring code bases.
"""

__version__ = "0.1.0"
