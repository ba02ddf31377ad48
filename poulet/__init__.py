"""Chess played by neural networks evolved through self-play."""

__version__ = "0.1.0"
__all__ = ["ai", "chess", "engine", "train"]