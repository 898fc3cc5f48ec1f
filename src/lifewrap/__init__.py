"""LifeWrap: hierarchical summary rollups for a personal voice journal."""

__version__ = "0.1.0"

__all__ = ["__version__"]
