"""
Linkt: ephemeral file and text sharing behind short codes.
"""
__version__ = "0.1.0"
