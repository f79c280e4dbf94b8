"""
Service integration framework for home-media automation services.
"""
__version__ = "0.1.0"
