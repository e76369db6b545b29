"""
Core load generation, validation and metrics components.
"""
