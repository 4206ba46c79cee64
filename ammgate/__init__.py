"""
ammgate: client-side transaction orchestration for an AMM settlement gateway.
"""

__version__ = "0.1.0"
