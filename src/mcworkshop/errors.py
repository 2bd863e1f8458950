"""Domain errors for mcworkshop."""

from typing import Any, List, Optional, Sequence


class DeploymentError(RuntimeError):
    """Raised when the deployment cannot continue safely."""


class ConfigurationLoadFailure(DeploymentError):
    """A required provider property or key file is missing."""


class ScriptRenderError(DeploymentError):
    """A configuration script was requested without its required context."""


class ProvisioningFailure(DeploymentError):
    """The batch create failed or returned unusable nodes.

    ``nodes`` holds every node the provider reported as created, so an
    operator can clean them up by hand. ``bound_roles`` lists the roles
    that could be bound to an addressable node before the failure.
    """

    def __init__(
        self,
        message: str,
        nodes: Optional[Sequence[Any]] = None,
        bound_roles: Optional[Sequence[Any]] = None,
    ):
        super().__init__(message)
        self.nodes = list(nodes or [])
        self.bound_roles = list(bound_roles or [])


class RoleBindingFailure(DeploymentError):
    """The created nodes cannot be mapped to roles unambiguously."""

    def __init__(self, message: str, nodes: Optional[Sequence[Any]] = None):
        super().__init__(message)
        self.nodes = list(nodes or [])


class RemoteExecutionFailure(DeploymentError):
    """A role's configuration script failed on its node."""

    def __init__(
        self,
        role: Any,
        node_id: str,
        exit_status: Optional[int] = None,
        transport_error: Optional[str] = None,
    ):
        self.role = role
        self.node_id = node_id
        self.exit_status = exit_status
        self.transport_error = transport_error
        self.report: Any = None
        self.failures: List["RemoteExecutionFailure"] = [self]
        super().__init__(self._describe())

    def _describe(self) -> str:
        role_label = getattr(self.role, "label", self.role)
        if self.transport_error is not None:
            return (
                f"Configuration of {role_label} on node {self.node_id} failed: "
                f"{self.transport_error}"
            )
        return (
            f"Configuration of {role_label} on node {self.node_id} "
            f"exited with status {self.exit_status}"
        )


class BatchCreateError(DeploymentError):
    """The provider could not create the whole batch."""

    def __init__(self, message: str, nodes: Optional[Sequence[Any]] = None):
        super().__init__(message)
        self.nodes = list(nodes or [])


class RemoteTransportError(DeploymentError):
    """The remote command channel failed before an exit status was known."""
