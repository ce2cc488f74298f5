from .store import InMemoryScoreStore

__all__ = ["InMemoryScoreStore"]
