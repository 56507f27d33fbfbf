"""
Custom exceptions for the scale set deployer.

This module defines a hierarchy of exceptions used throughout the
reconciliation engine to provide clear, actionable error messages.

Exception Hierarchy:
    DeploymentError (base)
    ├── ConfigurationError - Invalid desired input, detected before any remote call
    ├── TransportError - A control-plane call failed (raised by clients)
    ├── RemoteReadError - Fetching current state failed (fatal to the run)
    ├── GenerationExhaustedError - No unique generated value was found
    ├── RemoteMutationError - A create/update call failed (local to a subtree)
    └── DeploymentCancelledError - The run was cancelled before a node started
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .resource import ResourceIdentity


class DeploymentError(Exception):
    """
    Base exception for all deployment-related errors.

    Attributes:
        message: Human-readable error description
        resource: Optional identity of the resource the error refers to
    """

    def __init__(self, message: str, resource: Optional['ResourceIdentity'] = None):
        self.message = message
        self.resource = resource

        if resource is not None:
            full_message = f"{message} [resource={resource}]"
        else:
            full_message = message

        super().__init__(full_message)


class ConfigurationError(DeploymentError):
    """
    Raised when desired configuration is invalid or incomplete.

    This typically occurs when:
    - A required config file or field is missing
    - A config file has invalid JSON
    - A parameter fails validation (port out of range, bad CIDR, ...)
    - A node references a resource that is not part of the graph
    - The dependency relation contains a cycle

    Nothing has been applied remotely when this is raised.
    """

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        reference: Optional[str] = None
    ):
        self.config_file = config_file
        self.reference = reference
        if config_file:
            message = f"{message} (file: {config_file})"
        super().__init__(message)


class TransportError(DeploymentError):
    """
    Raised by control-plane clients when a remote call fails for any
    reason other than "not found".

    Attributes:
        original_error: The underlying SDK exception, if any
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


class RemoteReadError(DeploymentError):
    """
    Raised when the current state of a resource cannot be read.

    Fatal to the run: no mutation is attempted with unknown state.
    """

    def __init__(self, resource: 'ResourceIdentity', original_error: Optional[Exception] = None):
        self.original_error = original_error
        message = "Failed to read current state"
        if original_error:
            message += f": {original_error}"
        super().__init__(message, resource=resource)


class GenerationExhaustedError(DeploymentError):
    """
    Raised when a generated value (e.g. a DNS label) could not be made
    unique within the allowed number of attempts.
    """

    def __init__(self, seed: str, attempts: int):
        self.seed = seed
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique value for '{seed}' after {attempts} attempts"
        )


class RemoteMutationError(DeploymentError):
    """
    Raised when a create or update call fails.

    Contained to the failed node and its dependents; sibling subtrees
    continue to converge.

    Attributes:
        action: "create" or "update"
        original_error: The underlying client exception
    """

    def __init__(
        self,
        resource: 'ResourceIdentity',
        action: str,
        original_error: Optional[Exception] = None
    ):
        self.action = action
        self.original_error = original_error
        message = f"Failed to {action} resource"
        if original_error:
            message += f": {original_error}"
        super().__init__(message, resource=resource)


class DeploymentCancelledError(DeploymentError):
    """
    Recorded for nodes that had not started when cancellation was signalled.

    Raised directly only when cancellation happens before convergence
    begins (during state fetch or target resolution).
    """

    def __init__(self, resource: Optional['ResourceIdentity'] = None):
        super().__init__("Deployment cancelled", resource=resource)
