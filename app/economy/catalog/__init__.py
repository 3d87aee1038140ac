from app.economy.catalog.selector import CatalogSelector

__all__ = ["CatalogSelector"]
