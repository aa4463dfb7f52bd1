from .writer import OutputWriter, UNCHANGED, WRITTEN

__all__ = ["OutputWriter", "WRITTEN", "UNCHANGED"]
