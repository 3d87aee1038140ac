from app.game.leaderboard.service import LeaderboardService

__all__ = ["LeaderboardService"]
