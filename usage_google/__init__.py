"""
usage-google - Google Cloud Code quota checker
"""

__version__ = "0.1.0"
__logo__ = "📊"
