"""
stressbench - asyncio HTTP API stress testing.
"""

__version__ = "0.1.0"
