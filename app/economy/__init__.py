from app.economy.catalog import CatalogSelector
from app.economy.eligibility import EligibilityService
from app.economy.forge import ForgeService
from app.economy.mint import MintService

__all__ = ["CatalogSelector", "EligibilityService", "ForgeService", "MintService"]
