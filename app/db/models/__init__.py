from app.db.models.catalog_items import CatalogItem
from app.db.models.forge_operations import ForgeOperation
from app.db.models.leaderboard_snapshots import LeaderboardSnapshot
from app.db.models.mint_eligibilities import MintEligibility
from app.db.models.mint_operations import MintOperation
from app.db.models.owned_items import OwnedItem
from app.db.models.question_flags import QuestionFlag
from app.db.models.quiz_attempts import QuizAttempt
from app.db.models.quiz_categories import QuizCategory
from app.db.models.quiz_questions import QuizQuestion
from app.db.models.quiz_sessions import QuizSession
from app.db.models.season_points import SeasonPoints
from app.db.models.seasons import Season

__all__ = [
    "CatalogItem",
    "ForgeOperation",
    "LeaderboardSnapshot",
    "MintEligibility",
    "MintOperation",
    "OwnedItem",
    "QuestionFlag",
    "QuizAttempt",
    "QuizCategory",
    "QuizQuestion",
    "QuizSession",
    "SeasonPoints",
    "Season",
]
