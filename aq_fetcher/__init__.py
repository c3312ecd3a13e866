"""
Normalizes air-quality provider data into stations, sensors and measures.
"""

__version__ = "0.1.0"
