"""Compute provider abstraction for mcworkshop."""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from libcloud.compute.base import NodeAuthSSHKey
from libcloud.compute.providers import get_driver

from mcworkshop.errors import BatchCreateError, DeploymentError, RemoteTransportError
from mcworkshop.models import (
    ConfigScript,
    ExecutionResult,
    LoginCredentials,
    ProvisionedNode,
    ProvisioningRequest,
    ProviderSettings,
)
from mcworkshop.services.remote import SSHScriptRunner


@dataclass(frozen=True)
class ScriptOptions:
    block_until_complete: bool = True
    timeout_seconds: Optional[float] = None


class ComputeProvider:
    """Interface the orchestration layer consumes.

    Instances are context managers; ``close`` runs on every exit path.
    """

    def create_batch(self, request: ProvisioningRequest) -> List[ProvisionedNode]:
        raise NotImplementedError

    def execute_script(
        self,
        node_id: str,
        script: ConfigScript,
        options: ScriptOptions = ScriptOptions(),
    ) -> ExecutionResult:
        raise NotImplementedError

    def destroy_matching(self, group: str) -> List[ProvisionedNode]:
        raise NotImplementedError

    def close(self):
        return None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class LibcloudComputeProvider(ComputeProvider):
    """apache-libcloud backed provider with SSH script execution."""

    def __init__(
        self,
        settings: ProviderSettings,
        logger,
        driver_factory: Optional[Callable[..., Any]] = None,
        ssh_runner: Optional[SSHScriptRunner] = None,
    ):
        self.settings = settings
        self.logger = logger
        self.ssh_runner = ssh_runner or SSHScriptRunner(logger=logger)
        self._nodes: Dict[str, ProvisionedNode] = {}

        try:
            factory = driver_factory or get_driver(settings.name)
            self.driver = factory(settings.identity, settings.credential, **dict(settings.driver_options))
        except Exception as exc:
            raise DeploymentError(
                f"Could not initialize compute driver '{settings.name}': {exc}"
            ) from exc

    def create_batch(self, request: ProvisioningRequest) -> List[ProvisionedNode]:
        template = request.template
        try:
            location = self._resolve_location(template.location_id)
            image = self._resolve_image(template.image, location)
            size = self._resolve_size(template.hardware_id, location)
        except DeploymentError as exc:
            raise BatchCreateError(str(exc), nodes=[]) from exc
        except Exception as exc:
            raise BatchCreateError(
                f"Resolving the node template for group '{request.group}' failed: {exc}",
                nodes=[],
            ) from exc

        self.logger.debug(
            "Template: image=%s size=%s location=%s ports=%s",
            image.name,
            size.id,
            getattr(location, "id", None),
            ",".join(str(port) for port in template.inbound_ports),
        )

        created = []
        for name in request.names:
            try:
                node = self.driver.create_node(
                    name=name,
                    size=size,
                    image=image,
                    location=location,
                    auth=NodeAuthSSHKey(template.authorized_public_key),
                    **dict(self.settings.create_options),
                )
            except Exception as exc:
                partial = [self._to_node(item, template.login_private_key) for item in created]
                raise BatchCreateError(
                    f"Creating node '{name}' in group '{request.group}' failed: {exc}",
                    nodes=partial,
                ) from exc
            self.logger.debug("Requested node %s (%s)", name, node.id)
            created.append(node)

        try:
            running = self.driver.wait_until_running(
                created,
                wait_period=self.settings.poll_interval_seconds,
                timeout=self.settings.create_timeout_seconds,
            )
        except Exception as exc:
            partial = [self._to_node(item, template.login_private_key) for item in created]
            raise BatchCreateError(
                f"Nodes in group '{request.group}' did not reach the running state: {exc}",
                nodes=partial,
            ) from exc

        nodes = [self._to_node(node, template.login_private_key) for node, _ in running]
        for node in nodes:
            self._nodes[node.id] = node
        return nodes

    def execute_script(
        self,
        node_id: str,
        script: ConfigScript,
        options: ScriptOptions = ScriptOptions(),
    ) -> ExecutionResult:
        node = self._nodes.get(node_id)
        if node is None:
            raise RemoteTransportError(f"Node {node_id} is not known to this provider context")
        if not node.public_addresses:
            raise RemoteTransportError(f"Node {node_id} has no public address to connect to")

        timeout = options.timeout_seconds
        if timeout is None:
            timeout = self.settings.script_timeout_seconds

        return self.ssh_runner.run(
            host=node.public_address,
            credentials=node.credentials,
            script=script.render(),
            timeout=timeout,
            block=options.block_until_complete,
        )

    def destroy_matching(self, group: str) -> List[ProvisionedNode]:
        destroyed = []
        for node in self.driver.list_nodes():
            name = node.name or ""
            if name != group and not name.startswith(f"{group}-"):
                continue
            self.logger.debug("Destroying node %s (%s)", name, node.id)
            self.driver.destroy_node(node)
            destroyed.append(self._to_node(node, None))
            self._nodes.pop(str(node.id), None)
        return destroyed

    def close(self):
        self._nodes.clear()
        connection = getattr(self.driver, "connection", None)
        session = getattr(getattr(connection, "connection", None), "session", None)
        if session is not None:
            session.close()

    def _resolve_location(self, location_id: str):
        for location in self.driver.list_locations():
            if location.id == location_id or location.name == location_id:
                return location
        self.logger.debug("Location '%s' not listed by the driver; using its default", location_id)
        return None

    def _resolve_image(self, image_pattern: str, location):
        images = self.driver.list_images(location=location) if location else self.driver.list_images()
        for image in images:
            if image.name == image_pattern or image.id == image_pattern:
                return image

        pattern = re.compile(image_pattern)
        matches = sorted(
            (image for image in images if image.name and pattern.search(image.name)),
            key=lambda image: image.name,
        )
        if not matches:
            raise DeploymentError(f"No image matches '{image_pattern}'")
        return matches[-1]

    def _resolve_size(self, hardware_id: str, location):
        sizes = self.driver.list_sizes(location=location) if location else self.driver.list_sizes()
        candidates = {hardware_id}
        if self.settings.provider != "aws":
            candidates.add(f"{self.settings.location}/{hardware_id}")

        for size in sizes:
            if size.id in candidates or size.name == hardware_id:
                return size
        raise DeploymentError(f"No hardware profile matches '{hardware_id}'")

    def _to_node(self, node, private_key: Optional[str]) -> ProvisionedNode:
        extra = node.extra or {}
        return ProvisionedNode(
            id=str(node.id),
            name=node.name or "",
            public_addresses=tuple(node.public_ips or ()),
            private_addresses=tuple(node.private_ips or ()),
            credentials=LoginCredentials(
                user=self.settings.login_user,
                private_key=private_key,
                password=extra.get("password"),
            ),
        )
