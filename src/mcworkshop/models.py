"""Shared domain models for mcworkshop."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import DEFAULT_DATABASE_ROOT_PASSWORD
from .errors import RoleBindingFailure


class Role(Enum):
    """Logical positions in the topology, in configuration order."""

    DATABASE = "database"
    WEB_SERVER_1 = "web-server-1"
    WEB_SERVER_2 = "web-server-2"
    LOAD_BALANCER = "load-balancer"

    @property
    def label(self) -> str:
        return self.name


class RoleStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_ATTEMPTED = "not_attempted"


@dataclass(frozen=True)
class ProviderSettings:
    """Provider selection and run tunables, built once at startup."""

    provider: str
    name: str
    identity: str
    credential: str
    location: str
    image: str
    hardware: str
    group: str
    login_user: str
    keys_dir: str
    script_timeout_seconds: float
    poll_interval_seconds: float
    create_timeout_seconds: float
    allow_positional_binding: bool = True
    database_root_password: str = DEFAULT_DATABASE_ROOT_PASSWORD
    driver_options: Mapping[str, Any] = field(default_factory=dict)
    create_options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class KeyMaterial:
    public_key: str
    private_key: str
    private_key_path: str


@dataclass(frozen=True)
class NodeTemplate:
    image: str
    hardware_id: str
    location_id: str
    inbound_ports: Tuple[int, ...]
    authorized_public_key: str
    login_private_key: str


@dataclass(frozen=True)
class ProvisioningRequest:
    """One batch descriptor: every node shares ``template``."""

    group: str
    names: Tuple[str, ...]
    template: NodeTemplate
    count: int

    def __post_init__(self):
        if self.count != len(self.names) or len(set(self.names)) != len(self.names):
            raise ValueError(
                f"Batch count {self.count} does not match the {len(self.names)} distinct node names"
            )


@dataclass(frozen=True)
class LoginCredentials:
    user: str
    private_key: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class ProvisionedNode:
    id: str
    name: str
    public_addresses: Tuple[str, ...]
    private_addresses: Tuple[str, ...]
    credentials: LoginCredentials

    @property
    def is_addressable(self) -> bool:
        return bool(self.public_addresses) and bool(self.private_addresses)

    @property
    def public_address(self) -> str:
        return self.public_addresses[0]

    @property
    def private_address(self) -> str:
        return self.private_addresses[0]


class RoleBinding:
    """Read-only mapping from every role to the node fulfilling it."""

    def __init__(self, nodes: Mapping[Role, ProvisionedNode], strategy: str = "name"):
        missing = [role.label for role in Role if role not in nodes]
        if missing:
            raise RoleBindingFailure(
                f"Roles left unbound: {', '.join(missing)}",
                nodes=list(nodes.values()),
            )
        self._nodes = MappingProxyType({role: nodes[role] for role in Role})
        self.strategy = strategy

    def __getitem__(self, role: Role) -> ProvisionedNode:
        return self._nodes[role]

    def __iter__(self):
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def items(self):
        return self._nodes.items()

    def nodes(self) -> List[ProvisionedNode]:
        return list(self._nodes.values())


@dataclass(frozen=True)
class ConfigScript:
    role: Role
    commands: Tuple[str, ...]

    def render(self) -> str:
        lines = ["#!/bin/bash", "set -e"]
        lines.extend(self.commands)
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class ExecutionResult:
    exit_status: int
    stdout: str = ""
    stderr: str = ""


@dataclass
class RoleOutcome:
    role: Role
    node_id: Optional[str] = None
    status: RoleStatus = RoleStatus.PENDING
    exit_status: Optional[int] = None
    error: Optional[str] = None


@dataclass
class ConfigurationReport:
    """Per-role configuration outcomes for one run."""

    mode: str
    outcomes: Dict[Role, RoleOutcome] = field(default_factory=dict)

    @classmethod
    def for_binding(cls, binding: RoleBinding, mode: str) -> "ConfigurationReport":
        return cls(
            mode=mode,
            outcomes={role: RoleOutcome(role=role, node_id=node.id) for role, node in binding.items()},
        )

    def status_of(self, role: Role) -> RoleStatus:
        return self.outcomes[role].status

    @property
    def succeeded(self) -> bool:
        return all(outcome.status is RoleStatus.SUCCEEDED for outcome in self.outcomes.values())

    def roles_with_status(self, status: RoleStatus) -> List[Role]:
        return [role for role, outcome in self.outcomes.items() if outcome.status is status]

    def failed_roles(self) -> List[Role]:
        return self.roles_with_status(RoleStatus.FAILED)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "roles": {
                role.value: {
                    "node_id": outcome.node_id,
                    "status": outcome.status.value,
                    "exit_status": outcome.exit_status,
                    "error": outcome.error,
                }
                for role, outcome in self.outcomes.items()
            },
        }
