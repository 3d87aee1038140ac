class ForgeError(Exception):
    pass


class ForgeNotReadyError(ForgeError):
    pass


class ForgeInputsBusyError(ForgeError):
    pass


class SeasonalForgeClosedError(ForgeError):
    pass


class ForgeOperationNotFoundError(ForgeError):
    pass


class UnknownForgeCategoryError(ForgeError):
    pass
