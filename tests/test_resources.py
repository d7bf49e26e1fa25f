"""
Tests for resource label classification and identity sets.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from common.exceptions import CommandExitError
from qmexmut.resources import (
    KEY_VALUE_PATTERN, classify, has_host_resources, host_resources,
    label_host_resource, shares_host_resources,
)
from qmexmut.scanner import Match


@pytest.mark.unit
class TestClassify:
    """Tests for the key/value classification rule."""

    def test_pci_truncated_at_first_comma(self):
        assert classify("hostpci0", "0000:01:00.0,pcie=1") == "hostpci:0000:01:00.0"

    def test_pci_without_options(self):
        assert classify("hostpci3", "0000:02:00.0") == "hostpci:0000:02:00.0"

    def test_usb_host_binding(self):
        assert classify("usb0", "host=1-1.2") == "hostusb:1-1.2"

    def test_usb_host_binding_with_options(self):
        assert classify("usb2", "host=046d:c52b,usb3=1") == "hostusb:046d:c52b"

    def test_usb_without_host(self):
        assert classify("usb0", "spice") == ""

    def test_unrelated_key(self):
        assert classify("ide2", "local:iso/win.iso,media=cdrom") == ""

    def test_same_device_same_label(self):
        assert classify("hostpci0", "0000:01:00.0,x-vga=1") == \
            classify("hostpci1", "0000:01:00.0,pcie=1,rombar=0")

    def test_classes_are_namespaced(self):
        assert classify("hostpci0", "1-1.2") != classify("usb0", "host=1-1.2")


@pytest.mark.unit
class TestLabelHostResource:
    """Tests for labelling raw config lines."""

    @pytest.mark.parametrize("line,label", [
        ("hostpci0: 0000:01:00.0,pcie=1,x-vga=1", "hostpci:0000:01:00.0"),
        ("usb1: host=1-1.2,usb3=1", "hostusb:1-1.2"),
        ("usb1: spice,usb3=1", ""),
        ("net0: virtio=BC:24:11:00:00:01,bridge=vmbr0", ""),
        ("description: passthrough box: hostpci0", ""),
    ])
    def test_config_lines(self, line, label):
        found = KEY_VALUE_PATTERN.search(line)
        assert found is not None
        assert label_host_resource(Match(line, found)) == label


@pytest.mark.integration
class TestHostResources:
    """Tests against a fake qm."""

    def test_collects_all_labels(self, sample_pve, runner):
        assert host_resources(runner, "101") == frozenset({
            "hostpci:0000:01:00.0",
            "hostusb:1-1.2",
        })

    def test_vm_without_passthrough(self, fake_pve, runner):
        fake_pve.add_vm("200", "plain", "running", ["cores: 2", "memory: 2048"])
        assert host_resources(runner, "200") == frozenset()
        assert has_host_resources(runner, "200") is False

    def test_missing_vm_raises(self, fake_pve, runner):
        with pytest.raises(CommandExitError) as excinfo:
            host_resources(runner, "999")
        assert excinfo.value.returncode == 2
        assert "999" in excinfo.value.argv

    def test_has_host_resources(self, sample_pve, runner):
        assert has_host_resources(runner, "103") is True

    def test_shares(self, sample_pve, runner):
        labels = host_resources(runner, "101")
        assert shares_host_resources(runner, "102", labels) is True
        assert shares_host_resources(runner, "103", labels) is False

    def test_shares_nothing_with_empty_set(self, sample_pve, runner):
        assert shares_host_resources(runner, "102", frozenset()) is False
        assert sample_pve.config_queries == []

    def test_shares_stops_at_first_shared_label(self, fake_pve, runner):
        fake_pve.set_config_script("300", (
            "echo 'cores: 2'\n"
            "echo 'hostpci0: 0000:01:00.0,pcie=1'\n"
            "while :; do echo 'net0: virtio,bridge=vmbr0'; done\n"
        ))
        labels = frozenset({"hostpci:0000:01:00.0"})
        assert shares_host_resources(runner, "300", labels) is True
