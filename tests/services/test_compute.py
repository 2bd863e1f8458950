from types import SimpleNamespace

import pytest

from mcworkshop.errors import BatchCreateError, DeploymentError, ProvisioningFailure, RemoteTransportError
from mcworkshop.models import (
    ConfigScript,
    ExecutionResult,
    KeyMaterial,
    NodeTemplate,
    ProviderSettings,
    ProvisioningRequest,
    Role,
)
from mcworkshop.services.compute import LibcloudComputeProvider, ScriptOptions
from mcworkshop.services.provisioning import ProvisioningOrchestrator


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeDriver:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.created = []
        self.destroyed = []
        self.create_kwargs = []
        self.listed = []

    def list_locations(self):
        return [SimpleNamespace(id="DFW", name="Dallas")]

    def list_images(self, location=None):
        return [
            SimpleNamespace(id="img-1", name="Ubuntu 12.04 LTS"),
            SimpleNamespace(id="img-2", name="Ubuntu 12.10"),
            SimpleNamespace(id="img-3", name="CentOS 6"),
        ]

    def list_sizes(self, location=None):
        return [SimpleNamespace(id="DFW/2", name="512MB"), SimpleNamespace(id="DFW/3", name="1GB")]

    def create_node(self, name, size, image, location, auth, **kwargs):
        if name == self.fail_on:
            raise RuntimeError("quota exceeded")
        self.create_kwargs.append(dict(name=name, size=size, image=image, auth=auth, **kwargs))
        node = SimpleNamespace(
            id=f"id-{len(self.created)}",
            name=name,
            public_ips=[],
            private_ips=[],
            extra={"password": "pw"},
        )
        self.created.append(node)
        return node

    def wait_until_running(self, nodes, wait_period, timeout):
        running = []
        for index, node in enumerate(nodes):
            node.public_ips = [f"203.0.113.{index + 1}"]
            node.private_ips = [f"10.0.0.{index + 1}"]
            running.append((node, node.public_ips))
        return running

    def list_nodes(self):
        return self.listed

    def destroy_node(self, node):
        self.destroyed.append(node)
        return True


class FakeRunner:
    def __init__(self):
        self.calls = []

    def run(self, host, credentials, script, timeout=None, block=True):
        self.calls.append(dict(host=host, credentials=credentials, script=script, timeout=timeout, block=block))
        return ExecutionResult(exit_status=0)


def _settings(**overrides) -> ProviderSettings:
    values = dict(
        provider="rackspace",
        name="rackspace",
        identity="user",
        credential="secret",
        location="DFW",
        image="Ubuntu 12",
        hardware="2",
        group="mcw",
        login_user="root",
        keys_dir=".",
        script_timeout_seconds=1200.0,
        poll_interval_seconds=1.0,
        create_timeout_seconds=10.0,
        create_options={"ex_keyname": "mcw"},
    )
    values.update(overrides)
    return ProviderSettings(**values)


def _request() -> ProvisioningRequest:
    template = NodeTemplate(
        image="Ubuntu 12",
        hardware_id="2",
        location_id="DFW",
        inbound_ports=(22, 80),
        authorized_public_key="ssh-rsa AAAA",
        login_private_key="PRIVATE",
    )
    names = ("mcw-db", "mcw-webserver-01", "mcw-webserver-02", "mcw-lb")
    return ProvisioningRequest(group="mcw", names=names, template=template, count=4)


def _provider(driver, runner=None, **overrides):
    captured = {}

    def factory(identity, credential, **kwargs):
        captured.update(identity=identity, credential=credential, kwargs=kwargs)
        return driver

    provider = LibcloudComputeProvider(
        _settings(**overrides),
        logger=DummyLogger(),
        driver_factory=factory,
        ssh_runner=runner or FakeRunner(),
    )
    return provider, captured


def test_create_batch_creates_one_node_per_name_with_shared_template():
    driver = FakeDriver()
    provider, captured = _provider(driver, driver_options={"region": "dfw"})

    nodes = provider.create_batch(_request())

    assert captured == {"identity": "user", "credential": "secret", "kwargs": {"region": "dfw"}}
    assert [node.name for node in nodes] == ["mcw-db", "mcw-webserver-01", "mcw-webserver-02", "mcw-lb"]
    assert all(kwargs["image"].id == "img-2" for kwargs in driver.create_kwargs)
    assert all(kwargs["size"].id == "DFW/2" for kwargs in driver.create_kwargs)
    assert all(kwargs["auth"].pubkey == "ssh-rsa AAAA" for kwargs in driver.create_kwargs)
    assert all(kwargs["ex_keyname"] == "mcw" for kwargs in driver.create_kwargs)
    assert nodes[0].public_addresses == ("203.0.113.1",)
    assert nodes[0].private_addresses == ("10.0.0.1",)
    assert nodes[0].credentials.private_key == "PRIVATE"
    assert nodes[0].credentials.password == "pw"


def test_create_batch_failure_carries_partial_nodes():
    driver = FakeDriver(fail_on="mcw-webserver-02")
    provider, _ = _provider(driver)

    with pytest.raises(BatchCreateError, match="quota exceeded") as excinfo:
        provider.create_batch(_request())

    assert [node.name for node in excinfo.value.nodes] == ["mcw-db", "mcw-webserver-01"]


def test_create_batch_rejects_unknown_image():
    provider, _ = _provider(FakeDriver())
    request = _request()
    request = ProvisioningRequest(
        group=request.group,
        names=request.names,
        template=NodeTemplate(
            image="Debian",
            hardware_id="2",
            location_id="DFW",
            inbound_ports=(22,),
            authorized_public_key="ssh-rsa AAAA",
            login_private_key="PRIVATE",
        ),
        count=request.count,
    )

    with pytest.raises(BatchCreateError, match="No image matches 'Debian'"):
        provider.create_batch(request)


def test_execute_script_runs_rendered_script_on_public_address():
    runner = FakeRunner()
    provider, _ = _provider(FakeDriver(), runner=runner)
    nodes = provider.create_batch(_request())
    script = ConfigScript(role=Role.DATABASE, commands=("echo hi",))

    result = provider.execute_script(nodes[0].id, script, ScriptOptions(timeout_seconds=5.0))

    assert result.exit_status == 0
    assert runner.calls[0]["host"] == "203.0.113.1"
    assert runner.calls[0]["script"] == script.render()
    assert runner.calls[0]["timeout"] == 5.0
    assert runner.calls[0]["block"] is True


def test_execute_script_defaults_to_configured_timeout():
    runner = FakeRunner()
    provider, _ = _provider(FakeDriver(), runner=runner)
    nodes = provider.create_batch(_request())

    provider.execute_script(nodes[1].id, ConfigScript(role=Role.WEB_SERVER_1, commands=()))

    assert runner.calls[0]["timeout"] == 1200.0


def test_execute_script_rejects_unknown_node():
    provider, _ = _provider(FakeDriver())

    with pytest.raises(RemoteTransportError, match="not known"):
        provider.execute_script("missing", ConfigScript(role=Role.DATABASE, commands=()))


def test_destroy_matching_only_removes_group_nodes():
    driver = FakeDriver()
    driver.listed = [
        SimpleNamespace(id="1", name="mcw-db", public_ips=[], private_ips=[], extra={}),
        SimpleNamespace(id="2", name="other-db", public_ips=[], private_ips=[], extra={}),
        SimpleNamespace(id="3", name="mcw-lb", public_ips=[], private_ips=[], extra={}),
    ]
    provider, _ = _provider(driver)

    destroyed = provider.destroy_matching("mcw")

    assert [node.id for node in destroyed] == ["1", "3"]
    assert [node.id for node in driver.destroyed] == ["1", "3"]


def test_context_manager_closes_provider():
    provider, _ = _provider(FakeDriver())
    provider.create_batch(_request())

    with provider:
        pass

    with pytest.raises(RemoteTransportError):
        provider.execute_script("id-0", ConfigScript(role=Role.DATABASE, commands=()))


def test_driver_initialization_failure_is_a_deployment_error():
    def broken_factory(*_args, **_kwargs):
        raise ValueError("bad credentials")

    with pytest.raises(DeploymentError, match="bad credentials"):
        LibcloudComputeProvider(_settings(), logger=DummyLogger(), driver_factory=broken_factory)


class UnauthorizedDriver(FakeDriver):
    def list_locations(self):
        raise RuntimeError("401 Unauthorized")


def test_create_batch_wraps_driver_lookup_errors():
    driver = UnauthorizedDriver()
    provider, _ = _provider(driver)

    with pytest.raises(BatchCreateError, match="401 Unauthorized") as excinfo:
        provider.create_batch(_request())

    assert excinfo.value.nodes == []
    assert driver.created == []


def test_driver_lookup_error_becomes_provisioning_failure():
    provider, _ = _provider(UnauthorizedDriver())
    keys = KeyMaterial(public_key="ssh-rsa AAAA", private_key="PRIVATE", private_key_path="mcw.key")
    orchestrator = ProvisioningOrchestrator(
        provider=provider,
        settings=provider.settings,
        keys=keys,
        logger=DummyLogger(),
        console=DummyConsole(),
    )

    with pytest.raises(ProvisioningFailure, match="401 Unauthorized") as excinfo:
        orchestrator.provision()

    assert "mcworkshop destroy" in str(excinfo.value)
    assert excinfo.value.nodes == []
