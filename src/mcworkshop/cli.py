import logging
import os

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILENAME
from .core import Workshop
from .errors import DeploymentError
from .services.config_loader import ConfigLoader, load_provider_settings


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)
logging.getLogger("paramiko").setLevel(logging.WARNING)
logging.getLogger("libcloud").setLevel(logging.WARNING)


def _load_config(config):
    resolved_config = config
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILENAME)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path

    try:
        return ConfigLoader().load(resolved_config)
    except DeploymentError as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(verbose, log_file):
    logger = logging.getLogger("mcworkshop")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _build_settings(config_values, **overrides):
    merged = dict(config_values)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return load_provider_settings(merged)
    except DeploymentError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILENAME} if present.",
)
@click.option("--provider", required=False, help="Provider section of the config file to use.")
@click.option("--group", required=False, help="Node group tag (default: multi-cloud-workshop).")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, provider, group, verbose, log_file):
    """Provision a database, two web servers and a load balancer on a cloud provider."""
    config_values = _load_config(config)

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    ctx.obj = {
        "config": config_values,
        "provider": provider,
        "group": group,
    }


@main.command()
@click.option(
    "--keys-dir",
    required=False,
    type=click.Path(),
    help="Directory holding multi-cloud-workshop.pub and multi-cloud-workshop.key.",
)
@click.option("--login-user", required=False, help="SSH login user on created nodes (default: root).")
@click.option(
    "--parallel",
    is_flag=True,
    default=None,
    help="Configure the database and web servers concurrently.",
)
@click.option(
    "--script-timeout-seconds",
    required=False,
    type=float,
    default=None,
    help="Timeout for each remote configuration script (default: 1200).",
)
@click.option(
    "--no-positional-binding",
    "allow_positional_binding",
    flag_value=False,
    default=None,
    help="Fail instead of binding roles by result order when node names are unrecognized.",
)
@click.option(
    "--report-file",
    required=False,
    type=click.Path(),
    help="Write a JSON report of the run to this path.",
)
@click.pass_obj
def deploy(
    obj,
    keys_dir,
    login_user,
    parallel,
    script_timeout_seconds,
    allow_positional_binding,
    report_file,
):
    """Create the four nodes and configure their roles."""
    config_values = obj["config"]
    settings = _build_settings(
        config_values,
        provider=obj["provider"],
        group=obj["group"],
        keys_dir=keys_dir,
        login_user=login_user,
        script_timeout_seconds=script_timeout_seconds,
        allow_positional_binding=allow_positional_binding,
    )
    parallel = bool(_resolve_option(parallel, config_values, "parallel", default=False))
    report_file = _resolve_option(report_file, config_values, "report_file")

    workshop = Workshop(settings=settings, parallel=parallel, report_file=report_file)
    raise SystemExit(workshop.run())


@main.command()
@click.confirmation_option(prompt="Destroy every node in the group?")
@click.pass_obj
def destroy(obj):
    """Destroy every node in the group."""
    settings = _build_settings(obj["config"], provider=obj["provider"], group=obj["group"])

    workshop = Workshop(settings=settings)
    raise SystemExit(workshop.destroy())


if __name__ == "__main__":
    main()
