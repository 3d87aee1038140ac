from app.db.repo.catalog_items_repo import CatalogItemsRepo
from app.db.repo.forge_operations_repo import ForgeOperationsRepo
from app.db.repo.leaderboard_snapshots_repo import LeaderboardSnapshotsRepo
from app.db.repo.mint_eligibilities_repo import MintEligibilitiesRepo
from app.db.repo.mint_operations_repo import MintOperationsRepo
from app.db.repo.owned_items_repo import OwnedItemsRepo
from app.db.repo.question_flags_repo import QuestionFlagsRepo
from app.db.repo.quiz_attempts_repo import QuizAttemptsRepo
from app.db.repo.quiz_categories_repo import QuizCategoriesRepo
from app.db.repo.quiz_questions_repo import QuizQuestionsRepo
from app.db.repo.quiz_sessions_repo import QuizSessionsRepo
from app.db.repo.season_points_repo import SeasonPointsRepo
from app.db.repo.seasons_repo import SeasonsRepo

__all__ = [
    "CatalogItemsRepo",
    "ForgeOperationsRepo",
    "LeaderboardSnapshotsRepo",
    "MintEligibilitiesRepo",
    "MintOperationsRepo",
    "OwnedItemsRepo",
    "QuestionFlagsRepo",
    "QuizAttemptsRepo",
    "QuizCategoriesRepo",
    "QuizQuestionsRepo",
    "QuizSessionsRepo",
    "SeasonPointsRepo",
    "SeasonsRepo",
]
