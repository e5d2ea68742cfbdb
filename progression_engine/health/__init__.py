from progression_engine.health.router import router


__all__ = ["router"]
