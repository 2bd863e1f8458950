import json

from mcworkshop.models import ConfigurationReport, LoginCredentials, ProvisionedNode, Role, RoleBinding, RoleStatus
from mcworkshop.services.report import ReportWriter


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def warning(self, message, *args):
        self.warnings.append(message % args)


def _binding() -> RoleBinding:
    nodes = {
        role: ProvisionedNode(
            id=f"id-{index}",
            name=f"mcw-{role.value}",
            public_addresses=(f"203.0.113.{index}",),
            private_addresses=(f"10.0.0.{index}",),
            credentials=LoginCredentials(user="root"),
        )
        for index, role in enumerate(Role, start=1)
    }
    return RoleBinding(nodes, strategy="name")


def test_report_is_written_atomically_with_binding_and_configuration(tmp_path):
    report_file = tmp_path / "reports" / "run.json"
    writer = ReportWriter(str(report_file), logger=DummyLogger())
    binding = _binding()
    configuration = ConfigurationReport.for_binding(binding, mode="sequential")
    for outcome in configuration.outcomes.values():
        outcome.status = RoleStatus.SUCCEEDED

    writer.start_run(provider="rackspace", group="mcw")
    writer.set_binding(binding)
    writer.set_configuration(configuration)
    writer.finalize("success")

    data = json.loads(report_file.read_text(encoding="utf-8"))
    assert data["status"] == "success"
    assert data["provider"] == "rackspace"
    assert data["binding"]["strategy"] == "name"
    assert data["binding"]["roles"]["load-balancer"] == "id-4"
    assert [node["id"] for node in data["nodes"]] == ["id-1", "id-2", "id-3", "id-4"]
    assert data["configuration"]["roles"]["database"]["status"] == "succeeded"
    assert data["duration_seconds"] >= 0
    assert list(report_file.parent.iterdir()) == [report_file]


def test_report_writer_without_path_writes_nothing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    writer = ReportWriter(None, logger=DummyLogger())

    writer.start_run(provider="rackspace", group="mcw")
    writer.finalize("failed", error="boom")

    assert writer.report["error"] == "boom"
    assert list(tmp_path.iterdir()) == []
