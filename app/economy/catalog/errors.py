class CatalogError(Exception):
    pass


class NoStockAvailableError(CatalogError):
    def __init__(self, category_code: str) -> None:
        super().__init__(category_code)
        self.category_code = category_code


class CatalogItemNotFoundError(CatalogError):
    pass
