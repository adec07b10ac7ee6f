"""Hardware customization of a virtual machine."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass

from .multistep import ConfigError, StateBag, Step, StepAction

_FIRMWARES = ("", "bios", "efi", "efi-secure")
_TPM_FIRMWARES = ("efi", "efi-secure")


@dataclass
class HardwareConfig:
    """User settings for CPU, memory, video and firmware."""

    cpus: int = 0
    cpu_cores: int = 0
    cpu_reservation: int = 0
    cpu_limit: int = 0
    cpu_hot_add_enabled: bool = False
    ram: int = 0
    ram_reservation: int = 0
    ram_reserve_all: bool = False
    memory_hot_add_enabled: bool = False
    video_ram: int = 0
    displays: int = 0
    vgpu_profile: str = ""
    nested_hv: bool = False
    firmware: str = ""
    force_bios_setup: bool = False
    vtpm_enabled: bool = False

    def prepare(self) -> None:
        """Validate the settings; raise ConfigError listing every problem."""
        errors = []
        if self.ram_reservation > 0 and self.ram_reserve_all:
            errors.append("'RAM_reservation' and 'RAM_reserve_all' cannot be used together")
        if self.firmware not in _FIRMWARES:
            errors.append("'firmware' must be '', 'bios', 'efi' or 'efi-secure'")
        if self.vtpm_enabled and self.firmware not in _TPM_FIRMWARES:
            errors.append(
                "'vTPM' could be enabled only when 'firmware' set to 'efi' or 'efi-secure'"
            )
        if errors:
            raise ConfigError(errors)

    def is_empty(self) -> bool:
        return self == HardwareConfig()


@dataclass
class DriverHardwareConfig:
    """Hardware settings as handed to the virtual machine driver."""

    cpus: int = 0
    cpu_cores: int = 0
    cpu_reservation: int = 0
    cpu_limit: int = 0
    ram: int = 0
    ram_reservation: int = 0
    ram_reserve_all: bool = False
    nested_hv: bool = False
    cpu_hot_add_enabled: bool = False
    memory_hot_add_enabled: bool = False
    video_ram: int = 0
    displays: int = 0
    vgpu_profile: str = ""
    firmware: str = ""
    force_bios_setup: bool = False
    vtpm_enabled: bool = False

    @classmethod
    def from_config(cls, config: HardwareConfig) -> "DriverHardwareConfig":
        return cls(**dataclasses.asdict(config))


class StepConfigureHardware(Step):
    """Apply the hardware settings to the VM when any are given."""

    def __init__(self, config: HardwareConfig):
        self.config = config

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")
        if not self.config.is_empty():
            ui.say("Customizing hardware...")
            try:
                vm.configure(DriverHardwareConfig.from_config(self.config))
            except Exception as err:
                state.put("error", err)
                return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""