"""
Error taxonomy for the marketplace.

Every failure a manager can raise is a SkillShareError carrying the HTTP
status the API reports it with. Store failures are not wrapped: pymongo
errors propagate as they are.
"""


class SkillShareError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SkillShareError):
    """Missing or malformed input, raised before any store call."""
    status_code = 400


class AuthenticationError(SkillShareError):
    status_code = 401


class InsufficientFundsError(SkillShareError):
    status_code = 402

    def __init__(self, balance: int, amount: int):
        super().__init__(f"Insufficient credits: balance {balance}, required {amount}")
        self.balance = balance
        self.amount = amount


class AuthorizationError(SkillShareError):
    """The acting user does not own the resource being mutated."""
    status_code = 403


class NotFoundError(SkillShareError):
    status_code = 404


class StateError(SkillShareError):
    status_code = 409


class InvalidTransitionError(StateError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Invalid transition: {current} -> {requested}")
        self.current = current
        self.requested = requested
