from typing import Dict, List, Optional


class AppError(Exception):
    """Base app exception."""


class ValidationError(AppError):
    """
    Malformed or missing input. Carries a mapping of field name to the
    list of violation messages so the API layer can render per-field errors.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class NotFoundError(AppError):
    pass


class StateError(AppError):
    def __init__(self, message: str, current_state: Optional[str] = None, attempted_state: Optional[str] = None):
        super().__init__(message)
        self.current_state = current_state
        self.attempted_state = attempted_state


class ConflictError(AppError):
    pass


class InternalError(AppError):
    pass
