"""
Standardized exception hierarchy for the lifequest engine
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class LifeQuestError(Exception):
    """
    Base exception for all lifequest errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise LifeQuestError(
            message="Failed to save character state",
            character_id="char-1",
            operation="save_state",
            context={"quest_id": "abc-123"}
        )
    """

    def __init__(
        self,
        message: str,
        character_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.character_id = character_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "character_id": self.character_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.warning(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(LifeQuestError):
    """
    Raised when caller input fails validation, before any mutation

    Examples:
    - Negative resource amount
    - Zero XP award
    - Non-positive buff duration

    Example:
        raise ValidationError(
            message="Amount must be positive",
            field="amount",
            value=-5
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# State Transition Errors
# ==========================================

class InvalidTransitionError(LifeQuestError):
    """
    Raised when an operation would break a lifecycle rule

    State is left unchanged; `rule` names the violated rule so the caller
    can tell the user what happened.
    """

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        user_message: Optional[str] = None,
        **kwargs
    ):
        self.rule = rule
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            message=message,
            user_message=user_message or message,
            context={"rule": rule, "entity_type": entity_type, "entity_id": entity_id},
            **kwargs
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["rule"] = self.rule
        return data


class AlreadyCompletedError(InvalidTransitionError):
    """Quest or objective is already completed"""

    def __init__(self, entity_type: str, entity_id: str, **kwargs):
        super().__init__(
            message=f"{entity_type} {entity_id} is already completed",
            rule="already_completed",
            entity_type=entity_type,
            entity_id=entity_id,
            user_message=f"This {entity_type} is already completed.",
            **kwargs
        )


class AlreadySatisfiedError(InvalidTransitionError):
    """Recurring item was already completed in the current cadence window"""

    def __init__(
        self,
        entity_id: str,
        hours_since_last: float,
        cadence_hours: float,
        **kwargs
    ):
        self.hours_since_last = hours_since_last
        self.cadence_hours = cadence_hours
        super().__init__(
            message=(
                f"Recurring item {entity_id} already satisfied this period "
                f"({hours_since_last:.1f}h since last completion, cadence {cadence_hours}h)"
            ),
            rule="already_satisfied_this_period",
            entity_type="recurring_item",
            entity_id=entity_id,
            user_message="Already done for this period. Come back later!",
            **kwargs
        )


class QuestExpiredError(InvalidTransitionError):
    """Quest time limit has elapsed"""

    def __init__(self, quest_id: str, **kwargs):
        super().__init__(
            message=f"Quest {quest_id} exceeded its time limit",
            rule="time_limit_exceeded",
            entity_type="quest",
            entity_id=quest_id,
            user_message="This quest ran out of time.",
            **kwargs
        )


class IncompleteRequiredObjectivesError(LifeQuestError):
    """Manual quest completion blocked by unfinished required objectives"""

    def __init__(
        self,
        quest_id: str,
        remaining_objectives: List[str],
        **kwargs
    ):
        self.quest_id = quest_id
        self.remaining_objectives = remaining_objectives
        super().__init__(
            message=(
                f"Cannot complete quest {quest_id}: "
                f"{len(remaining_objectives)} required objective(s) are not finished"
            ),
            user_message="Finish the remaining required objectives first.",
            context={"quest_id": quest_id, "remaining_objectives": remaining_objectives},
            **kwargs
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["remaining_objectives"] = list(self.remaining_objectives)
        return data


class NotFoundError(LifeQuestError):
    """Requested quest, objective, buff, item or character does not exist"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(LifeQuestError):
    """
    Base class for persistence-boundary errors
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to the database. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        context = {"query": query}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your progress. Please try again.",
            context=context,
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(LifeQuestError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    character_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> LifeQuestError:
    """
    Wrap external exceptions (psycopg, pydantic) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        character_id: Character ID if applicable
        context: Additional context

    Returns:
        Appropriate LifeQuestError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="save_character_state",
                character_id="char-1",
            )
    """
    import psycopg
    import pydantic

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            character_id=character_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            character_id=character_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, pydantic.ValidationError):
        return DatabaseError(
            message=f"Stored state failed validation: {error.error_count()} error(s)",
            character_id=character_id,
            operation=operation,
            context=context,
            cause=error,
            user_message="Your saved progress could not be read."
        )

    # Generic fallback
    else:
        return LifeQuestError(
            message=f"{operation} failed: {str(error)}",
            character_id=character_id,
            operation=operation,
            context=context,
            cause=error
        )
