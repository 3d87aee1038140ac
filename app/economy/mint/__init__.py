from app.economy.mint.service import MintService

__all__ = ["MintService"]
