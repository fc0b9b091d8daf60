from watchprogress.health.router import router


__all__ = ["router"]
