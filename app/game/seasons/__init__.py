from app.game.seasons.service import SeasonService

__all__ = ["SeasonService"]
