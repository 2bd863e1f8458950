"""SSH script execution for mcworkshop."""

import io
import socket
from typing import Optional

import paramiko

from mcworkshop.constants import SSH_CONNECT_TIMEOUT
from mcworkshop.errors import RemoteTransportError
from mcworkshop.models import ExecutionResult, LoginCredentials


class SSHScriptRunner:
    """Runs rendered scripts on a node through ``bash -s``."""

    KEY_CLASSES = (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey)
    DETACHED_SCRIPT_PATH = "/tmp/mcworkshop-config.sh"

    def __init__(self, logger, client_factory=paramiko.SSHClient, connect_timeout: float = SSH_CONNECT_TIMEOUT):
        self.logger = logger
        self.client_factory = client_factory
        self.connect_timeout = connect_timeout

    def run(
        self,
        host: str,
        credentials: LoginCredentials,
        script: str,
        timeout: Optional[float] = None,
        block: bool = True,
    ) -> ExecutionResult:
        client = self.client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            self._connect(client, host, credentials)
            command = "bash -s" if block else self._detached_command()
            self.logger.debug("Executing on %s@%s: %s", credentials.user, host, command)

            stdin, stdout, stderr = client.exec_command(command, timeout=timeout)
            stdin.write(script)
            stdin.channel.shutdown_write()

            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except socket.timeout as exc:
            raise RemoteTransportError(f"Script on {host} timed out after {timeout}s") from exc
        except (paramiko.SSHException, OSError) as exc:
            raise RemoteTransportError(f"SSH channel to {host} failed: {exc}") from exc
        finally:
            client.close()

        if out.strip():
            self.logger.debug("Output from %s: %s", host, out.strip())
        if exit_status != 0 and err.strip():
            self.logger.warning("Script on %s exited %s:\n%s", host, exit_status, err.strip())

        return ExecutionResult(exit_status=exit_status, stdout=out, stderr=err)

    def _connect(self, client, host: str, credentials: LoginCredentials):
        pkey = self._load_private_key(credentials.private_key) if credentials.private_key else None
        client.connect(
            hostname=host,
            username=credentials.user,
            pkey=pkey,
            password=credentials.password if pkey is None else None,
            timeout=self.connect_timeout,
            allow_agent=False,
            look_for_keys=False,
        )

    def _load_private_key(self, private_key: str) -> paramiko.PKey:
        for key_cls in self.KEY_CLASSES:
            try:
                return key_cls.from_private_key(io.StringIO(private_key))
            except paramiko.SSHException:
                continue
        raise RemoteTransportError("Unsupported or invalid SSH private key format")

    def _detached_command(self) -> str:
        path = self.DETACHED_SCRIPT_PATH
        # Only the launch is backgrounded; cat must read the script from the channel.
        return f"cat > {path} && (nohup bash {path} > {path}.log 2>&1 < /dev/null &)"
