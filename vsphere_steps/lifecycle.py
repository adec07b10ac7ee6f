"""Steps that drive a VM through its build lifecycle."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .multistep import STATE_CANCELLED, STATE_HALTED, StateBag, Step, StepAction

DEFAULT_SNAPSHOT_NAME = "Created By Packer"


class StepCreateSnapshot(Step):
    """Take a snapshot of the VM when asked to."""

    def __init__(self, create_snapshot: bool = False, snapshot_name: str = ""):
        self.create_snapshot = create_snapshot
        self.snapshot_name = snapshot_name

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        if not self.create_snapshot:
            return StepAction.CONTINUE
        ui = state.get("ui")
        vm = state.get("vm")
        ui.say("Creating snapshot...")
        try:
            vm.create_snapshot(self.snapshot_name or DEFAULT_SNAPSHOT_NAME)
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""


class StepConvertToTemplate(Step):
    """Turn the VM into a template when asked to."""

    def __init__(self, convert_to_template: bool = False):
        self.convert_to_template = convert_to_template

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        if not self.convert_to_template:
            return StepAction.CONTINUE
        ui = state.get("ui")
        vm = state.get("vm")
        ui.say("Convert VM into template...")
        try:
            vm.convert_to_template()
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""


@dataclass
class RunConfig:
    """Boot device priority, e.g. "floppy,cdrom,ethernet,disk"."""

    boot_order: str = ""


class StepRun(Step):
    """Set the boot order and power the VM on; power it off on failure."""

    def __init__(self, config: RunConfig, set_order: bool = False):
        self.config = config
        self.set_order = set_order

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")
        try:
            if self.config.boot_order:
                ui.say("Set boot order...")
                vm.set_boot_order(self.config.boot_order.split(","))
            elif self.set_order:
                ui.say("Set boot order temporary...")
                vm.set_boot_order(["disk", "cdrom"])
            ui.say("Power on VM...")
            vm.power_on()
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        ui = state.get("ui")
        vm = state.get("vm")

        if not self.config.boot_order and self.set_order:
            ui.say("Clear boot order...")
            try:
                vm.set_boot_order(["-"])
            except Exception as err:
                state.put("error", err)
                return

        if STATE_CANCELLED not in state and STATE_HALTED not in state:
            return

        ui.say("Power off VM...")
        try:
            vm.power_off()
        except Exception as err:
            ui.error(str(err))


@dataclass
class RemoveCDRomConfig:
    """Whether CD-ROM devices are deleted from the template."""

    remove_cdrom: bool = False


class StepRemoveCDRom(Step):
    """Eject every CD-ROM drive and optionally delete the devices."""

    def __init__(self, config: RemoveCDRomConfig):
        self.config = config

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")
        try:
            ui.say("Eject CD-ROM drives...")
            vm.eject_cdroms()
            if self.config.remove_cdrom:
                ui.say("Deleting CD-ROM drives...")
                vm.remove_cdroms()
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""


class StepRemoveFloppy(Step):
    """Delete floppy drives and any floppy image that was uploaded."""

    def __init__(self, datastore: str = "", host: str = ""):
        self.datastore = datastore
        self.host = host

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")
        driver = state.get("driver")
        try:
            ui.say("Deleting Floppy drives...")
            floppies = vm.floppy_devices()
            vm.remove_device(True, *floppies)

            if "uploaded_floppy_path" in state:
                ui.say("Deleting Floppy image...")
                datastore = driver.find_datastore(self.datastore, self.host)
                datastore.delete(state.get("uploaded_floppy_path"))
                state.remove("uploaded_floppy_path")
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""