class ChainDataError(Exception):
    pass


class ChainDataRateLimitError(ChainDataError):
    pass


class ChainDataApiError(ChainDataError):
    pass


class UnsupportedChainError(ChainDataError):
    pass
