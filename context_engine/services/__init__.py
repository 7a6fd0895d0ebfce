# context_engine/services/__init__.py
"""Service layer modules"""

# Import services directly where needed to avoid circular imports

__all__ = []
