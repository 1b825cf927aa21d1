class LedgerError(Exception):
    pass


class InvalidAmountError(LedgerError):
    def __init__(self, amount, reason: str = ""):
        self.amount = amount
        message = f"Invalid amount {amount}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InsufficientBalanceError(LedgerError):
    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        message = f"Available shielded balance insufficient: {available} < {requested}"
        super().__init__(message)


class MalformedNoteError(LedgerError):
    def __init__(self, reason: str):
        self.reason = reason
        message = f"Malformed note payload: {reason}"
        super().__init__(message)


class InvalidDerivationModeError(LedgerError):
    def __init__(self, mode):
        self.mode = mode
        message = f"Invalid key derivation mode {mode}"
        super().__init__(message)


class InvalidMessageKindError(LedgerError):
    def __init__(self, kind):
        self.kind = kind
        message = f"Invalid message kind {kind}"
        super().__init__(message)


class KeyStoreUnavailableError(LedgerError):
    def __init__(self, message):
        message = f"Keystore_error  = {message}"
        super().__init__(message)


class UpstreamUnavailableError(LedgerError):
    def __init__(self, operation: str, detail: str = "", status_code: int | None = None):
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        message = f"{operation} failed"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class PlanStateError(LedgerError):
    def __init__(self, state, action: str):
        self.state = state
        self.action = action
        message = f"Cannot {action} while plan is {state}"
        super().__init__(message)


class KeyDerivationUnavailableWarning(UserWarning):
    """Emitted when no identity scalar is available and a random keypair is used.

    Other parties can no longer recompute this identity's encryption public key,
    so notes addressed to a previously published key become unreadable.
    """


class ServerDatabaseError(Exception):
    pass


class ConnectionPoolError(ServerDatabaseError):
    def __init__(self, message):
        super().__init__(message)


class MessageStoreError(ServerDatabaseError):
    def __init__(self, message):
        super().__init__(message)
