from app.economy.forge.service import ForgeService

__all__ = ["ForgeService"]
