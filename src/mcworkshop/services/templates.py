"""Per-role configuration script rendering for mcworkshop."""

import shlex
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from mcworkshop.constants import DEFAULT_DATABASE_ROOT_PASSWORD
from mcworkshop.errors import ScriptRenderError
from mcworkshop.models import ConfigScript, Role
from mcworkshop.roles import ROLE_SPECS


@dataclass(frozen=True)
class ScriptContext:
    """Role-specific inputs for a script.

    DATABASE reads ``private_address``, web servers read ``public_address``
    and LOAD_BALANCER reads ``web_servers`` as (name, private address) pairs.
    """

    private_address: Optional[str] = None
    public_address: Optional[str] = None
    web_servers: Tuple[Tuple[str, str], ...] = ()


class ScriptTemplateService:
    """Renders deterministic shell scripts for each role."""

    APT = "sudo DEBIAN_FRONTEND=noninteractive apt-get -q -y"
    MYSQL_CONFIG_PATH = "/etc/mysql/my.cnf"
    WEB_ROOT_INDEX = "/var/www/html/index.html"
    HAPROXY_DEFAULTS_PATH = "/etc/default/haproxy"
    HAPROXY_CONFIG_PATH = "/etc/haproxy/haproxy.cfg"
    HEREDOC_MARKER = "HAPROXY_CFG"

    def __init__(self, database_root_password: str = DEFAULT_DATABASE_ROOT_PASSWORD):
        self.database_root_password = database_root_password

    def render(self, role: Role, context: ScriptContext) -> ConfigScript:
        if role is Role.DATABASE:
            commands = self._database_commands(context)
        elif role is Role.LOAD_BALANCER:
            commands = self._load_balancer_commands(context)
        elif ROLE_SPECS[role].web_server:
            commands = self._web_server_commands(role, context)
        else:
            raise ScriptRenderError(f"No configuration template for role {role.label}")

        return ConfigScript(role=role, commands=tuple(commands))

    def _base_commands(self) -> List[str]:
        return [
            f"{self.APT} update",
            f"{self.APT} upgrade",
        ]

    def _database_commands(self, context: ScriptContext) -> List[str]:
        if not context.private_address:
            raise ScriptRenderError("DATABASE script requires the node's private address")

        commands = self._base_commands()
        for question in ("root_password", "root_password_again"):
            selection = f"mysql-server mysql-server/{question} password {self.database_root_password}"
            commands.append(f"sudo debconf-set-selections <<< {shlex.quote(selection)}")
        commands.extend(
            [
                f"{self.APT} install mysql-server",
                (
                    "sudo sed -i -e "
                    f"'s/^bind-address.*/bind-address = {context.private_address}/' "
                    f"{self.MYSQL_CONFIG_PATH}"
                ),
                "sudo service mysql restart",
            ]
        )
        return commands

    def _web_server_commands(self, role: Role, context: ScriptContext) -> List[str]:
        if not context.public_address:
            raise ScriptRenderError(f"{role.label} script requires the node's public address")

        greeting = f"Hello from {context.public_address}"
        commands = self._base_commands()
        commands.extend(
            [
                f"{self.APT} install apache2",
                f"echo {shlex.quote(greeting)} | sudo tee {self.WEB_ROOT_INDEX} > /dev/null",
            ]
        )
        return commands

    def _load_balancer_commands(self, context: ScriptContext) -> List[str]:
        config = self.render_load_balancer_config(context.web_servers)

        commands = self._base_commands()
        commands.extend(
            [
                f"{self.APT} install haproxy",
                f"sudo sed -i -e 's/ENABLED=0/ENABLED=1/' {self.HAPROXY_DEFAULTS_PATH}",
                (
                    f"sudo tee {self.HAPROXY_CONFIG_PATH} > /dev/null <<'{self.HEREDOC_MARKER}'\n"
                    f"{config}{self.HEREDOC_MARKER}"
                ),
                "sudo service haproxy restart",
            ]
        )
        return commands

    def render_load_balancer_config(self, web_servers: Sequence[Tuple[str, str]]) -> str:
        if not web_servers:
            raise ScriptRenderError("LOAD_BALANCER script requires at least one web server")

        for name, address in web_servers:
            if not name or not address:
                raise ScriptRenderError(
                    f"Web server entry ({name!r}, {address!r}) needs a name and a private address"
                )

        server_lines = "".join(
            f"        server {name} {address}\n" for name, address in web_servers
        )

        return f"""global
        log 127.0.0.1   local0
        log 127.0.0.1   local1 notice
        maxconn 4096
        user haproxy
        group haproxy
        daemon
        stats socket /tmp/haproxy

defaults
        log global
        mode http
        option httplog
        option dontlognull
        retries 3
        option redispatch
        maxconn 2000
        timeout connect 5000
        timeout client 50000
        timeout server 50000

listen  web-proxy
        bind 0.0.0.0:80
        mode http
        balance roundrobin
{server_lines}"""
