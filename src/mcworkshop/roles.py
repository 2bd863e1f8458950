"""Fixed role registry for the workshop topology."""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from .constants import GROUP
from .models import Role


@dataclass(frozen=True)
class RoleSpec:
    name_suffix: str
    inbound_ports: FrozenSet[int]
    web_server: bool = False


ROLE_SPECS: Dict[Role, RoleSpec] = {
    Role.DATABASE: RoleSpec(name_suffix="db", inbound_ports=frozenset({22, 3306})),
    Role.WEB_SERVER_1: RoleSpec(
        name_suffix="webserver-01",
        inbound_ports=frozenset({22, 80, 3000}),
        web_server=True,
    ),
    Role.WEB_SERVER_2: RoleSpec(
        name_suffix="webserver-02",
        inbound_ports=frozenset({22, 80, 3000}),
        web_server=True,
    ),
    Role.LOAD_BALANCER: RoleSpec(name_suffix="lb", inbound_ports=frozenset({22, 80})),
}


def required_roles() -> Tuple[Role, ...]:
    return tuple(role for role in Role if role in ROLE_SPECS)


def web_server_roles() -> Tuple[Role, ...]:
    return tuple(role for role in required_roles() if ROLE_SPECS[role].web_server)


def ports_for(role: Role) -> FrozenSet[int]:
    return ROLE_SPECS[role].inbound_ports


def all_ports() -> Tuple[int, ...]:
    ports = set()
    for role in required_roles():
        ports.update(ports_for(role))
    return tuple(sorted(ports))


def node_name(role: Role, group: str = GROUP) -> str:
    return f"{group}-{ROLE_SPECS[role].name_suffix}"
