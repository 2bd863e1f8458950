"""Batch provisioning and role binding for mcworkshop."""

from typing import Dict, List, Sequence, Tuple

from mcworkshop.errors import DeploymentError, ProvisioningFailure, RoleBindingFailure
from mcworkshop.errors_catalog import actionable_error
from mcworkshop.models import (
    KeyMaterial,
    NodeTemplate,
    ProviderSettings,
    ProvisionedNode,
    ProvisioningRequest,
    Role,
    RoleBinding,
)
from mcworkshop.roles import all_ports, node_name, required_roles


def _name_matches(reported: str, requested: str) -> bool:
    # Some providers append a suffix to the requested name.
    return reported == requested or reported.startswith(f"{requested}-")


def _describe_nodes(nodes: Sequence[ProvisionedNode]) -> str:
    if not nodes:
        return "the provider console for nodes in the group"
    return ", ".join(f"{node.name or '<unnamed>'} ({node.id})" for node in nodes)


def bind_roles(
    nodes: Sequence[ProvisionedNode],
    group: str,
    allow_positional: bool,
    logger,
) -> Tuple[Dict[Role, ProvisionedNode], str]:
    """Maps created nodes to roles.

    Reported names are matched against the role-qualified names first. Only
    when no node reports a recognizable name, and the policy allows it, are
    nodes assigned positionally in declared role order. Any partial or
    duplicate match is refused.
    """
    roles = required_roles()
    if len(nodes) != len(roles):
        raise RoleBindingFailure(
            actionable_error(
                "role_binding_failed",
                reason=f"expected {len(roles)} nodes, got {len(nodes)}",
            ),
            nodes=nodes,
        )

    if len({node.id for node in nodes}) != len(nodes):
        raise RoleBindingFailure(
            actionable_error("role_binding_failed", reason="provider returned duplicate node ids"),
            nodes=nodes,
        )

    requested = {role: node_name(role, group) for role in roles}
    candidates = {
        node.id: [role for role in roles if _name_matches(node.name or "", requested[role])]
        for node in nodes
    }

    if not any(candidates.values()):
        if not allow_positional:
            raise RoleBindingFailure(
                actionable_error(
                    "role_binding_failed",
                    reason="no node reported a requested name and positional binding is disabled",
                ),
                nodes=nodes,
            )
        logger.warning(
            "No node reported a requested name; binding roles by provider result order."
        )
        return dict(zip(roles, nodes)), "positional"

    mapping: Dict[Role, ProvisionedNode] = {}
    for node in nodes:
        matched = candidates[node.id]
        if len(matched) != 1:
            raise RoleBindingFailure(
                actionable_error(
                    "role_binding_failed",
                    reason=f"node '{node.name}' ({node.id}) matches {len(matched)} roles",
                ),
                nodes=nodes,
            )
        role = matched[0]
        if role in mapping:
            raise RoleBindingFailure(
                actionable_error(
                    "role_binding_failed",
                    reason=f"more than one node claims role {role.label}",
                ),
                nodes=nodes,
            )
        mapping[role] = node

    return mapping, "name"


class ProvisioningOrchestrator:
    """Creates the whole topology in one batch and binds it to roles."""

    def __init__(self, provider, settings: ProviderSettings, keys: KeyMaterial, logger, console):
        self.provider = provider
        self.settings = settings
        self.keys = keys
        self.logger = logger
        self.console = console

    def build_request(self) -> ProvisioningRequest:
        names = tuple(node_name(role, self.settings.group) for role in required_roles())
        template = NodeTemplate(
            image=self.settings.image,
            hardware_id=self.settings.hardware,
            location_id=self.settings.location,
            inbound_ports=all_ports(),
            authorized_public_key=self.keys.public_key,
            login_private_key=self.keys.private_key,
        )
        return ProvisioningRequest(
            group=self.settings.group,
            names=names,
            template=template,
            count=len(names),
        )

    def provision(self) -> RoleBinding:
        request = self.build_request()

        self.console.print(f"[blue]Creating {request.count} servers in group {request.group}...[/blue]")
        self.logger.info("Creating servers %s", ", ".join(request.names))

        try:
            nodes: List[ProvisionedNode] = list(self.provider.create_batch(request))
        except DeploymentError as exc:
            partial = getattr(exc, "nodes", [])
            raise ProvisioningFailure(
                actionable_error(
                    "provisioning_failed",
                    reason=str(exc),
                    orphans=_describe_nodes(partial),
                ),
                nodes=partial,
            ) from exc

        if len(nodes) < request.count:
            raise ProvisioningFailure(
                actionable_error(
                    "provisioning_failed",
                    reason=f"requested {request.count} nodes but the provider returned {len(nodes)}",
                    orphans=_describe_nodes(nodes),
                ),
                nodes=nodes,
            )

        mapping, strategy = bind_roles(
            nodes,
            group=request.group,
            allow_positional=self.settings.allow_positional_binding,
            logger=self.logger,
        )

        unusable = [role for role, node in mapping.items() if not node.is_addressable]
        if unusable:
            bound = [role for role in mapping if role not in unusable]
            labels = ", ".join(role.label for role in unusable)
            raise ProvisioningFailure(
                actionable_error(
                    "provisioning_failed",
                    reason=f"nodes for {labels} lack a public or private address",
                    orphans=_describe_nodes(nodes),
                ),
                nodes=nodes,
                bound_roles=bound,
            )

        binding = RoleBinding(mapping, strategy=strategy)
        self.logger.info("Bound %s roles by %s", len(binding), strategy)
        return binding
