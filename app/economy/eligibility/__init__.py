from app.economy.eligibility.service import EligibilityService

__all__ = ["EligibilityService"]
