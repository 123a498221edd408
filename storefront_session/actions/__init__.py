"""Session actions: login flows, post-login cart migration and header counters."""
from .counters import CounterSnapshot, SessionCounters
from .login import LoginAction
from .migration import CartMigrationCoordinator, MergeOutcome

__all__ = ["CounterSnapshot", "SessionCounters", "LoginAction", "CartMigrationCoordinator", "MergeOutcome"]
