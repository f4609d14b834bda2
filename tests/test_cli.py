from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeGateway
from typer.testing import CliRunner

from bluezdm import cli
from bluezdm.core.errors import TransportConnectError
from bluezdm.core.manager import DeviceManager
from bluezdm.transports.base import Capability

runner = CliRunner()


@pytest.fixture
def gateway(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> FakeGateway:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    gateway = FakeGateway()
    gateway.add_adapter("hci0", "AA:BB:CC:DD:EE:01")
    gateway.add_adapter("hci1", "AA:BB:CC:DD:EE:02")
    gateway.add_device("hci0", "dev_11_22_33_44_55_66", Address="11:22:33:44:55:66", Name="Headset", RSSI=-51)
    gateway.add_device("hci1", "dev_66_55_44_33_22_11", Address="66:55:44:33:22:11", Alias="Keyboard")
    monkeypatch.setattr(
        cli,
        "_build_manager",
        lambda ctx: DeviceManager(gateway, discovery_timeout_ms=ctx.obj["settings"].discovery_timeout_ms),
    )
    return gateway


def test_adapters_command(gateway: FakeGateway) -> None:
    result = runner.invoke(cli.app, ["adapters"])
    assert result.exit_code == 0
    assert "hci0 AA:BB:CC:DD:EE:01 (default)" in result.stdout
    assert "hci1 AA:BB:CC:DD:EE:02" in result.stdout
    assert gateway.disconnects == 1


def test_adapters_command_empty(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setattr(cli, "_build_manager", lambda ctx: DeviceManager(FakeGateway()))
    result = runner.invoke(cli.app, ["adapters"])
    assert result.exit_code == 0
    assert "No Bluetooth adapters found" in result.stdout


def test_devices_command(gateway: FakeGateway) -> None:
    result = runner.invoke(cli.app, ["devices", "--timeout", "0"])
    assert result.exit_code == 0
    assert "11:22:33:44:55:66 Headset -51 /org/bluez/hci0/dev_11_22_33_44_55_66" in result.stdout
    assert "Keyboard" not in result.stdout


def test_devices_command_with_adapter_option(gateway: FakeGateway) -> None:
    result = runner.invoke(cli.app, ["devices", "--adapter", "hci1", "--timeout", "0"])
    assert result.exit_code == 0
    assert "66:55:44:33:22:11 Keyboard - /org/bluez/hci1/dev_66_55_44_33_22_11" in result.stdout


def test_devices_command_uses_config_defaults(gateway: FakeGateway, tmp_path: Path) -> None:
    config = tmp_path / "bluezdm.yaml"
    config.write_text("discovery_timeout_ms: 0\ndefault_adapter: AA:BB:CC:DD:EE:02\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["--config", str(config), "devices"])

    assert result.exit_code == 0
    assert "Keyboard" in result.stdout


def test_devices_command_cached_does_not_start_discovery(gateway: FakeGateway) -> None:
    result = runner.invoke(cli.app, ["devices", "--cached"])
    assert result.exit_code == 0
    assert "Headset" in result.stdout
    adapter_proxy = gateway.proxies[("/org/bluez/hci0", Capability.ADAPTER)]
    assert adapter_proxy.calls == []


def test_devices_command_unknown_adapter(gateway: FakeGateway) -> None:
    result = runner.invoke(cli.app, ["devices", "--adapter", "hci9", "--timeout", "0"])
    assert result.exit_code == 0
    assert "No Bluetooth devices found" in result.stdout


def test_monitor_prints_property_changes(gateway: FakeGateway, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_sleep(seconds: float) -> None:
        gateway.handlers[0]("/org/bluez/hci0/dev_11_22_33_44_55_66", "org.bluez.Device1", {"RSSI": -42}, ["Name"])

    monkeypatch.setattr(cli.time, "sleep", fake_sleep)
    result = runner.invoke(cli.app, ["monitor", "--seconds", "1"])

    assert result.exit_code == 0
    assert "/org/bluez/hci0/dev_11_22_33_44_55_66 org.bluez.Device1.RSSI = -42" in result.stdout
    assert "org.bluez.Device1.Name invalidated" in result.stdout


def test_connect_error_is_clean(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))

    def failing(ctx):
        raise TransportConnectError("Could not connect to D-Bus (system): no socket")

    monkeypatch.setattr(cli, "_build_manager", failing)
    result = runner.invoke(cli.app, ["adapters"])

    assert result.exit_code == 1
    assert "Error: Could not connect to D-Bus (system): no socket" in result.stderr
    assert "Traceback" not in result.stdout


def test_invalid_config_is_clean(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    config = tmp_path / "bad.yaml"
    config.write_text("discovery_timeout_ms: soon\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["--config", str(config), "adapters"])

    assert result.exit_code == 1
    assert "Error: Schema validation failed" in result.stderr
