from scalpcore.config import Settings

__all__ = ["Settings", "__version__"]

__version__ = "0.1.0"
