from .health import ResilienceHealthChecker

__all__ = ["ResilienceHealthChecker"]
