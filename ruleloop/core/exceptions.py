"""
Custom Exceptions for ruleloop

This module defines custom exception types for error handling and retry decisions.

Exception Hierarchy:
- RuleLoopException (base)
  - AutomationError
    - RuleStoreError (retry on next tick)
    - RuleNotFoundError (don't retry)
    - EventSourceError (retry on next tick)
    - RecorderError (retry on next tick)
  - GenerationError (retry on next tick)
    - GenerationSchemaError (don't retry)
    - GenerationUnavailableError (retry, circuit breaker open)
  - ConfigurationError (don't retry)
"""


class RuleLoopException(Exception):
    """Base exception for all ruleloop errors"""

    def __init__(self, message: str, retry_allowed: bool = True):
        super().__init__(message)
        self.message = message
        self.retry_allowed = retry_allowed


# ============================================================================
# AUTOMATION ERRORS
# ============================================================================

class AutomationError(RuleLoopException):
    """Base class for automation loop errors"""
    pass


class RuleStoreError(AutomationError):
    """
    Rules could not be listed or updated (e.g., database unreachable).
    The pass ends; the next tick tries again.
    """

    def __init__(self, message: str):
        super().__init__(message, retry_allowed=True)


class RuleNotFoundError(AutomationError):
    """
    Rule id does not exist.
    Should NOT be retried.
    """

    def __init__(self, message: str, rule_id: int = None):
        super().__init__(message, retry_allowed=False)
        self.rule_id = rule_id


class EventSourceError(AutomationError):
    """
    Candidate events could not be fetched or written back.
    Isolated to the rule being processed.
    """

    def __init__(self, message: str, trigger_type: str = None):
        super().__init__(message, retry_allowed=True)
        self.trigger_type = trigger_type


class RecorderError(AutomationError):
    """Execution record could not be persisted."""

    def __init__(self, message: str):
        super().__init__(message, retry_allowed=True)


# ============================================================================
# GENERATION ERRORS
# ============================================================================

class GenerationError(RuleLoopException):
    """
    Generation service call failed (network, provider error, timeout).
    Retried implicitly on the next tick.
    """

    def __init__(self, message: str, model: str = None, retry_allowed: bool = True):
        super().__init__(message, retry_allowed=retry_allowed)
        self.model = model


class GenerationSchemaError(GenerationError):
    """
    Model output was not JSON or did not match the declared schema.
    Should NOT be retried blindly - fix the prompt or schema.
    """

    def __init__(self, message: str, model: str = None, payload=None):
        super().__init__(message, model=model, retry_allowed=False)
        self.payload = payload


class GenerationUnavailableError(GenerationError):
    """
    Generation circuit breaker is open, call rejected without contacting the provider.
    """

    def __init__(self, message: str, model: str = None):
        super().__init__(message, model=model, retry_allowed=True)


# ============================================================================
# INFRASTRUCTURE ERRORS
# ============================================================================

class ConfigurationError(RuleLoopException):
    """
    Missing or invalid configuration value.
    Should NOT be retried - fix the environment.
    """

    def __init__(self, message: str, setting: str = None):
        super().__init__(message, retry_allowed=False)
        self.setting = setting
