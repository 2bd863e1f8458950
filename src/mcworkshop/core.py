import logging
import time
from typing import Callable, Optional

from rich.console import Console
from rich.table import Table

from .errors import (
    DeploymentError,
    ProvisioningFailure,
    RemoteExecutionFailure,
    RoleBindingFailure,
)
from .errors_catalog import actionable_error
from .models import ConfigurationReport, KeyMaterial, ProviderSettings, Role, RoleBinding, RoleStatus
from .services.compute import ComputeProvider, LibcloudComputeProvider
from .services.configurator import RoleConfigurator
from .services.keys import KeyLoader
from .services.provisioning import ProvisioningOrchestrator
from .services.report import ReportWriter
from .services.templates import ScriptTemplateService

console = Console()
logger = logging.getLogger("mcworkshop")

STATUS_STYLES = {
    RoleStatus.SUCCEEDED: "green",
    RoleStatus.FAILED: "bold red",
    RoleStatus.NOT_ATTEMPTED: "yellow",
    RoleStatus.PENDING: "dim",
}


def _default_provider_factory(settings: ProviderSettings) -> ComputeProvider:
    return LibcloudComputeProvider(settings, logger=logger)


class Workshop:
    """Provisions the topology once and configures every role."""

    def __init__(
        self,
        settings: ProviderSettings,
        parallel: bool = False,
        report_file: Optional[str] = None,
        provider_factory: Optional[Callable[[ProviderSettings], ComputeProvider]] = None,
        key_loader: Optional[KeyLoader] = None,
    ):
        self.settings = settings
        self.parallel = parallel
        self.provider_factory = provider_factory or _default_provider_factory
        self.key_loader = key_loader or KeyLoader(logger=logger)
        self.template_service = ScriptTemplateService(
            database_root_password=settings.database_root_password,
        )
        self.report_writer = ReportWriter(report_file, logger=logger)
        self.binding: Optional[RoleBinding] = None
        self.configuration: Optional[ConfigurationReport] = None

    def print_login_hints(self, binding: RoleBinding, keys: KeyMaterial):
        console.print("[bold]Created servers:[/bold]")
        for role, node in binding.items():
            user = node.credentials.user
            if node.credentials.private_key:
                hint = f"ssh -i {keys.private_key_path} {user}@{node.public_address}"
            else:
                hint = f"ssh {user}@{node.public_address} (password: {node.credentials.password})"
            console.print(f"  {node.name:<40} {hint}")
            logger.info("%s %s -> %s", role.label, node.name, hint)

    def print_summary(self, report: ConfigurationReport):
        table = Table(title=f"Role configuration ({report.mode})")
        table.add_column("Role")
        table.add_column("Node")
        table.add_column("Status")
        table.add_column("Detail")

        for role, outcome in report.outcomes.items():
            style = STATUS_STYLES[outcome.status]
            table.add_row(
                role.label,
                outcome.node_id or "-",
                f"[{style}]{outcome.status.value}[/{style}]",
                outcome.error or "",
            )
        console.print(table)

    def provision_and_configure(self, provider: ComputeProvider, keys: KeyMaterial) -> ConfigurationReport:
        orchestrator = ProvisioningOrchestrator(
            provider=provider,
            settings=self.settings,
            keys=keys,
            logger=logger,
            console=console,
        )
        self.binding = orchestrator.provision()
        self.report_writer.set_binding(self.binding)
        self.print_login_hints(self.binding, keys)

        configurator = RoleConfigurator(
            provider=provider,
            template_service=self.template_service,
            logger=logger,
            console=console,
            group=self.settings.group,
            parallel=self.parallel,
            script_timeout=self.settings.script_timeout_seconds,
        )
        self.configuration = configurator.configure(self.binding)
        return self.configuration

    def run(self) -> int:
        started = time.monotonic()
        report_status = "failed"
        report_error: Optional[str] = None

        try:
            logger.info("Multi-Cloud Workshop on %s", self.settings.name)
            self.report_writer.start_run(provider=self.settings.provider, group=self.settings.group)

            keys = self.key_loader.load(self.settings.keys_dir)

            with self.provider_factory(self.settings) as provider:
                configuration = self.provision_and_configure(provider, keys)

            self.report_writer.set_configuration(configuration)
            self.print_summary(configuration)
            load_balancer = self.binding[Role.LOAD_BALANCER]
            console.print(f"[bold green]Go to http://{load_balancer.public_address}[/bold green]")
            report_status = "success"
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.warning(
                "Operation cancelled by user. Nodes already requested may still exist in group %s.",
                self.settings.group,
            )
            report_status = "aborted"
            report_error = "Operation cancelled by user."
            return 1
        except RemoteExecutionFailure as exc:
            report = exc.report
            succeeded = "none"
            if report is not None:
                self.report_writer.set_configuration(report)
                self.print_summary(report)
                configured = report.roles_with_status(RoleStatus.SUCCEEDED)
                succeeded = ", ".join(role.label for role in configured) or "none"
            for failure in exc.failures:
                message = actionable_error("configuration_failed", reason=str(failure), succeeded=succeeded)
                console.print(f"[bold red]Error:[/bold red] {message}")
                logger.error(message)
            report_error = str(exc)
            return 1
        except (ProvisioningFailure, RoleBindingFailure) as exc:
            if exc.nodes:
                self.report_writer.set_nodes(exc.nodes)
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            report_error = str(exc)
            return 1
        except DeploymentError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            report_error = str(exc)
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            report_error = str(exc)
            return 1
        finally:
            self.report_writer.finalize(report_status, error=report_error)
            logger.info("The run took %.1fs", time.monotonic() - started)

    def destroy(self) -> int:
        try:
            with self.provider_factory(self.settings) as provider:
                nodes = provider.destroy_matching(self.settings.group)
        except DeploymentError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error while destroying nodes")
            return 1

        if not nodes:
            console.print(f"[yellow]No nodes found in group {self.settings.group}.[/yellow]")
            return 0

        console.print(f"[bold]Destroyed {len(nodes)} nodes:[/bold]")
        for node in nodes:
            console.print(f"  {node.name} ({node.id})")
            logger.info("Destroyed %s (%s)", node.name, node.id)
        return 0
