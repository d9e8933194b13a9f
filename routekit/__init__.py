"""routekit: filesystem-driven route discovery, registration and metrics."""

__version__ = "0.1.0"

__all__ = ["__version__"]
