"""Custom exceptions for the planner backend"""


class PlannerError(Exception):
    """Base exception for all planner errors"""
    pass


class StorageError(PlannerError):
    """Persistence operation failed"""
    def __init__(self, message: str, kind: str = None, owner: str = None):
        super().__init__(message)
        self.kind = kind
        self.owner = owner


class IdentityError(PlannerError):
    """Owner identity could not be resolved"""
    pass


class MigrationError(PlannerError):
    """Guest data migration failed"""
    def __init__(self, message: str, kind: str = None):
        super().__init__(message)
        self.kind = kind


class FormulaError(PlannerError):
    """Formula could not be evaluated.

    Raised inside the evaluator only; callers see the ``#ERROR`` marker.
    """
    def __init__(self, message: str, position: int = None):
        super().__init__(message)
        self.position = position


class ConfigError(PlannerError):
    """Invalid configuration value"""
    pass
