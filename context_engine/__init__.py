"""Content relevance matching and LLM context assembly"""

__version__ = "1.0.0"
