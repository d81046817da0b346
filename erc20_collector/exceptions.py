class CollectorError(Exception):
    """Base class for errors that turn a single account into a Fail."""


class Cancelled(CollectorError):
    """The outer deadline was cancelled or has expired."""


class GasTrackerError(CollectorError):
    pass


class ChainClientError(CollectorError):
    pass


class BroadcastError(CollectorError):
    """The node rejected a raw transaction.

    ``message`` is the node's own error text, kept verbatim so the engine
    can recognise nonce and replacement races.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InsufficientBalanceError(CollectorError):
    pass


class InvalidAmountError(CollectorError):
    pass


class KeyProviderError(CollectorError):
    pass
