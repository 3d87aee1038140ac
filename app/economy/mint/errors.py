class MintError(Exception):
    pass


class MintOperationNotFoundError(MintError):
    pass
