"""Legacy API - shared family memory vaults"""

__version__ = "0.1.0"
