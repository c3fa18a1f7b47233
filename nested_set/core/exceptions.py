"""
Base exception hierarchy for nested set tree operations.

Store failures are defined separately in
``nested_set.core.row_store.exceptions`` and propagate unchanged.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""


class NestedSetError(Exception):
    """Base exception for nested set tree operations."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            code: Optional error code for programmatic handling
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConfigurationError(NestedSetError):
    """Raised when tree configuration or node construction is invalid.

    Nodes never accept an explicit parent or interval value: those are only
    assigned through the attach API and the interval assigner.
    """

    def __init__(self, message: str, config_key: str = None, details: dict = None):
        """
        Initialize configuration error.

        Args:
            message: Error message
            config_key: Optional configuration key (or node attribute) that is invalid
            details: Optional additional details
        """
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)
        self.config_key = config_key


class InvariantViolation(NestedSetError):
    """Raised when stored intervals fail containment or width invariants."""

    def __init__(self, message: str, node_id: str = None, details: dict = None):
        """
        Initialize invariant violation.

        Args:
            message: Error message
            node_id: Optional id of the offending row
            details: Optional additional details (scope, left, right, ...)
        """
        super().__init__(message, code="INVARIANT_VIOLATION", details=details)
        self.node_id = node_id


class InvalidMoveError(NestedSetError):
    """Raised when a reparent request cannot be carried out."""

    def __init__(
        self,
        message: str,
        node_id: str = None,
        parent_id: str = None,
        details: dict = None,
    ):
        """
        Initialize invalid move error.

        Args:
            message: Error message
            node_id: Id of the node being moved
            parent_id: Id of the requested new parent
            details: Optional additional details
        """
        super().__init__(message, code="INVALID_MOVE", details=details)
        self.node_id = node_id
        self.parent_id = parent_id


class NodeStateError(NestedSetError):
    """Raised when an operation is not valid for the node's lifecycle state."""

    def __init__(self, message: str, state: str = None, details: dict = None):
        """
        Initialize node state error.

        Args:
            message: Error message
            state: Lifecycle state the node was in
            details: Optional additional details
        """
        super().__init__(message, code="NODE_STATE_ERROR", details=details)
        self.state = state
