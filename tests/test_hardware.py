import io

import pytest

from vsphere_steps.hardware import (
    DriverHardwareConfig,
    HardwareConfig,
    StepConfigureHardware,
)
from vsphere_steps.multistep import ConfigError, StateBag, StepAction, Ui


class FakeVM:
    def __init__(self, configure_error=None):
        self.configure_error = configure_error
        self.configure_called = False
        self.configure_hardware_config = None

    def configure(self, config):
        self.configure_called = True
        self.configure_hardware_config = config
        if self.configure_error is not None:
            raise self.configure_error


def basic_state():
    return StateBag({"ui": Ui(io.StringIO(), io.StringIO()), "debug": False})


def basic_config():
    return HardwareConfig(
        cpus=1,
        cpu_cores=1,
        cpu_reservation=1,
        cpu_limit=4000,
        ram=1024,
        ram_reserve_all=True,
        firmware="efi-secure",
        force_bios_setup=True,
    )


@pytest.mark.parametrize(
    "config",
    [
        HardwareConfig(),
        HardwareConfig(firmware="bios"),
        HardwareConfig(firmware="efi"),
        HardwareConfig(firmware="efi-secure"),
        HardwareConfig(firmware="efi", vtpm_enabled=True),
        HardwareConfig(firmware="efi-secure", vtpm_enabled=True),
    ],
)
def test_prepare_valid(config):
    assert config.prepare() is None


@pytest.mark.parametrize(
    "config, message",
    [
        (
            HardwareConfig(ram_reservation=2, ram_reserve_all=True),
            "'RAM_reservation' and 'RAM_reserve_all' cannot be used together",
        ),
        (
            HardwareConfig(firmware="invalid"),
            "'firmware' must be '', 'bios', 'efi' or 'efi-secure'",
        ),
        (
            HardwareConfig(firmware="bios", vtpm_enabled=True),
            "'vTPM' could be enabled only when 'firmware' set to 'efi' or 'efi-secure'",
        ),
        (
            HardwareConfig(vtpm_enabled=True),
            "'vTPM' could be enabled only when 'firmware' set to 'efi' or 'efi-secure'",
        ),
    ],
)
def test_prepare_invalid(config, message):
    with pytest.raises(ConfigError) as info:
        config.prepare()
    assert info.value.errors[0] == message


def test_configure_hardware():
    state = basic_state()
    vm = FakeVM()
    state.put("vm", vm)
    step = StepConfigureHardware(basic_config())
    assert step.run(state) is StepAction.CONTINUE
    assert vm.configure_called is True
    assert vm.configure_hardware_config == DriverHardwareConfig(
        cpus=1,
        cpu_cores=1,
        cpu_reservation=1,
        cpu_limit=4000,
        ram=1024,
        ram_reserve_all=True,
        firmware="efi-secure",
        force_bios_setup=True,
    )
    assert "error" not in state


def test_empty_config_does_not_configure():
    state = basic_state()
    vm = FakeVM()
    state.put("vm", vm)
    step = StepConfigureHardware(HardwareConfig())
    assert step.run(state) is StepAction.CONTINUE
    assert vm.configure_called is False
    assert vm.configure_hardware_config is None
    assert "error" not in state


def test_halt_when_configure_fails():
    state = basic_state()
    vm = FakeVM(RuntimeError("failed to configure"))
    state.put("vm", vm)
    step = StepConfigureHardware(basic_config())
    assert step.run(state) is StepAction.HALT
    assert vm.configure_called is True
    assert vm.configure_hardware_config == DriverHardwareConfig.from_config(basic_config())
    assert "failed to configure" in str(state.get("error"))


def test_is_empty():
    assert HardwareConfig().is_empty() is True
    assert HardwareConfig(ram=1024).is_empty() is False