"""Per-role remote configuration for mcworkshop."""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from mcworkshop.constants import GROUP
from mcworkshop.errors import RemoteExecutionFailure, RemoteTransportError
from mcworkshop.models import ConfigurationReport, Role, RoleBinding, RoleStatus
from mcworkshop.roles import node_name, required_roles, web_server_roles
from mcworkshop.services.compute import ScriptOptions
from mcworkshop.services.templates import ScriptContext, ScriptTemplateService


class RoleConfigurator:
    """Renders and runs each role's script against its bound node.

    Sequential mode stops at the first failure and leaves later roles
    NOT_ATTEMPTED. Parallel mode dispatches every role, with the load
    balancer submitted after both web servers, and reports each outcome
    independently. Scripts only read addresses known at bind time, so the
    load balancer never waits for web server configuration to finish.
    """

    def __init__(
        self,
        provider,
        template_service: ScriptTemplateService,
        logger,
        console,
        group: str = GROUP,
        parallel: bool = False,
        script_timeout: Optional[float] = None,
    ):
        self.provider = provider
        self.template_service = template_service
        self.logger = logger
        self.console = console
        self.group = group
        self.parallel = parallel
        self.script_timeout = script_timeout

    def build_context(self, role: Role, binding: RoleBinding) -> ScriptContext:
        node = binding[role]
        if role is Role.DATABASE:
            return ScriptContext(private_address=node.private_address)
        if role is Role.LOAD_BALANCER:
            return ScriptContext(
                web_servers=tuple(
                    (node_name(web_role, self.group), binding[web_role].private_address)
                    for web_role in web_server_roles()
                )
            )
        return ScriptContext(public_address=node.public_address)

    def configure(self, binding: RoleBinding) -> ConfigurationReport:
        if self.parallel:
            return self._configure_parallel(binding)
        return self._configure_sequential(binding)

    def _configure_sequential(self, binding: RoleBinding) -> ConfigurationReport:
        report = ConfigurationReport.for_binding(binding, mode="sequential")
        roles = required_roles()

        for index, role in enumerate(roles):
            failure = self._configure_role(role, binding, report)
            if failure is None:
                continue

            for skipped in roles[index + 1:]:
                report.outcomes[skipped].status = RoleStatus.NOT_ATTEMPTED
            failure.report = report
            raise failure

        return report

    def _configure_parallel(self, binding: RoleBinding) -> ConfigurationReport:
        report = ConfigurationReport.for_binding(binding, mode="parallel")
        roles = required_roles()

        with ThreadPoolExecutor(max_workers=len(roles)) as pool:
            # Submission follows role order, so the load balancer is
            # dispatched after both web servers.
            futures = [(role, pool.submit(self._configure_role, role, binding, report)) for role in roles]
            failures: List[RemoteExecutionFailure] = []
            for role, future in futures:
                try:
                    failure = future.result()
                except Exception as exc:
                    failure = self._unexpected_failure(role, binding, report, exc)
                if failure is not None:
                    failures.append(failure)

        if failures:
            first = failures[0]
            first.report = report
            first.failures = failures
            raise first

        return report

    def _configure_role(
        self,
        role: Role,
        binding: RoleBinding,
        report: ConfigurationReport,
    ) -> Optional[RemoteExecutionFailure]:
        node = binding[role]
        outcome = report.outcomes[role]
        script = self.template_service.render(role, self.build_context(role, binding))

        self.console.print(f"[blue]{role.label} {node.name} configuration started...[/blue]")
        self.logger.info("Configuring %s on %s (%s)", role.label, node.name, node.id)

        options = ScriptOptions(block_until_complete=True, timeout_seconds=self.script_timeout)
        try:
            result = self.provider.execute_script(node.id, script, options)
        except RemoteTransportError as exc:
            outcome.status = RoleStatus.FAILED
            outcome.error = str(exc)
            self.logger.error("%s configuration failed: %s", role.label, exc)
            return RemoteExecutionFailure(role, node.id, transport_error=str(exc))

        outcome.exit_status = result.exit_status
        if result.exit_status != 0:
            outcome.status = RoleStatus.FAILED
            outcome.error = f"exit status {result.exit_status}"
            self.logger.error("%s configuration exited with %s", role.label, result.exit_status)
            return RemoteExecutionFailure(role, node.id, exit_status=result.exit_status)

        outcome.status = RoleStatus.SUCCEEDED
        self.console.print(f"[green]{role.label} configuration complete.[/green]")
        self.logger.info("%s configuration complete", role.label)
        return None

    def _unexpected_failure(
        self,
        role: Role,
        binding: RoleBinding,
        report: ConfigurationReport,
        exc: Exception,
    ) -> RemoteExecutionFailure:
        outcome = report.outcomes[role]
        outcome.status = RoleStatus.FAILED
        outcome.error = str(exc)
        self.logger.error("%s configuration failed unexpectedly: %s", role.label, exc)
        return RemoteExecutionFailure(role, binding[role].id, transport_error=str(exc))
