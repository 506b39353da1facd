"""Actor execution context: lifecycle, spawned and waiting futures, cancellation and the poll loop."""

__version__ = "0.1.0"
__all__ = ["context"]