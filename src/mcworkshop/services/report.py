"""Run report generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from mcworkshop.models import ConfigurationReport, ProvisionedNode, RoleBinding


class ReportWriter:
    """Collects run results and writes them as JSON when a path is given."""

    def __init__(self, report_file: Optional[str], logger):
        self.report_file = report_file
        self.logger = logger
        self.report: Dict[str, Any] = {
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "provider": None,
            "group": None,
            "binding": None,
            "nodes": [],
            "configuration": None,
            "error": None,
        }

    def start_run(self, provider: str, group: str):
        self.report["status"] = "running"
        self.report["started_at"] = self._now()
        self.report["provider"] = provider
        self.report["group"] = group
        self.write()

    def set_nodes(self, nodes: Sequence[ProvisionedNode]):
        self.report["nodes"] = [
            {
                "id": node.id,
                "name": node.name,
                "public_addresses": list(node.public_addresses),
                "private_addresses": list(node.private_addresses),
                "user": node.credentials.user,
            }
            for node in nodes
        ]
        self.write()

    def set_binding(self, binding: RoleBinding):
        self.report["binding"] = {
            "strategy": binding.strategy,
            "roles": {role.value: node.id for role, node in binding.items()},
        }
        self.set_nodes(binding.nodes())

    def set_configuration(self, configuration: ConfigurationReport):
        self.report["configuration"] = configuration.as_dict()
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.report["status"] = status
        self.report["finished_at"] = self._now()
        if self.report.get("started_at"):
            started_at = datetime.fromisoformat(self.report["started_at"])
            finished_at = datetime.fromisoformat(self.report["finished_at"])
            self.report["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.report["error"] = error
        self.write()

    def write(self):
        if not self.report_file:
            return

        os.makedirs(os.path.dirname(self.report_file) or ".", exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            prefix="run-report-",
            suffix=".json",
            dir=os.path.dirname(os.path.abspath(self.report_file)),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.report, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.report_file)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
