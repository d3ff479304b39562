"""
Domain error taxonomy.

Every failure that crosses a component boundary is one of these tagged
errors. Recovery decisions are made from ``kind`` and
``suggested_action``, never from message text.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories."""
    VALIDATION = "validation"
    COLLABORATOR = "collaborator"
    REASONING = "reasoning"
    CATALOG = "catalog"


class SuggestedAction(str, Enum):
    """Next step offered to the caller alongside a recoverable error."""
    RETRY = "retry"
    SUPPLY_LOCATION = "supply_location"
    CHOOSE_IMAGE = "choose_image"
    NONE = "none"


class ReforestError(Exception):
    """Base class for all tagged errors raised by the service."""

    kind: ErrorKind = ErrorKind.COLLABORATOR
    default_action: SuggestedAction = SuggestedAction.RETRY
    status_code: int = 500

    def __init__(
        self,
        message: str,
        suggested_action: Optional[SuggestedAction] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.suggested_action = suggested_action or self.default_action
        if status_code is not None:
            self.status_code = status_code

    @property
    def recoverable(self) -> bool:
        return self.kind is not ErrorKind.CATALOG

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "suggested_action": self.suggested_action.value,
            "recoverable": self.recoverable,
        }


class ValidationError(ReforestError):
    """Bad file type/size or invalid manually entered coordinates."""
    kind = ErrorKind.VALIDATION
    default_action = SuggestedAction.CHOOSE_IMAGE
    status_code = 400


class CollaboratorError(ReforestError):
    """Network or API failure from geocoding, climate or image services."""
    kind = ErrorKind.COLLABORATOR
    default_action = SuggestedAction.RETRY
    status_code = 502

    def __init__(
        self,
        message: str,
        service: str = "external",
        suggested_action: Optional[SuggestedAction] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, suggested_action, status_code)
        self.service = service

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["service"] = self.service
        return data


class ReasoningError(ReforestError):
    """External reasoning failure or timeout. Always swallowed by the blender."""
    kind = ErrorKind.REASONING
    default_action = SuggestedAction.NONE
    status_code = 502


class CatalogConfigurationError(ReforestError):
    """The species catalog cannot guarantee a non-empty recommendation."""
    kind = ErrorKind.CATALOG
    default_action = SuggestedAction.NONE
    status_code = 500
