import io
from dataclasses import dataclass, field

import pytest

from vsphere_steps.lifecycle import (
    RemoveCDRomConfig,
    RunConfig,
    StepConvertToTemplate,
    StepCreateSnapshot,
    StepRemoveCDRom,
    StepRemoveFloppy,
    StepRun,
)
from vsphere_steps.multistep import STATE_HALTED, StateBag, StepAction, Ui


@dataclass
class VirtualMachineMock:
    eject_cdroms_called: bool = False
    eject_cdroms_err: Exception | None = field(default=None, compare=False)
    remove_cdroms_called: bool = False
    remove_cdroms_err: Exception | None = field(default=None, compare=False)
    floppy_devices_called: bool = False
    floppy_devices_err: Exception | None = field(default=None, compare=False)
    remove_device_called: bool = False
    remove_device_keep_files: bool = False
    remove_device_err: Exception | None = field(default=None, compare=False)
    snapshot_name: str | None = None
    snapshot_err: Exception | None = field(default=None, compare=False)
    converted: bool = False
    boot_orders: list = field(default_factory=list)
    powered_on: bool = False
    power_on_err: Exception | None = field(default=None, compare=False)
    powered_off: bool = False

    def eject_cdroms(self):
        self.eject_cdroms_called = True
        if self.eject_cdroms_err:
            raise self.eject_cdroms_err

    def remove_cdroms(self):
        self.remove_cdroms_called = True
        if self.remove_cdroms_err:
            raise self.remove_cdroms_err

    def floppy_devices(self):
        self.floppy_devices_called = True
        if self.floppy_devices_err:
            raise self.floppy_devices_err
        return []

    def remove_device(self, keep_files, *devices):
        self.remove_device_called = True
        self.remove_device_keep_files = keep_files
        if self.remove_device_err:
            raise self.remove_device_err

    def create_snapshot(self, name):
        self.snapshot_name = name
        if self.snapshot_err:
            raise self.snapshot_err

    def convert_to_template(self):
        self.converted = True

    def set_boot_order(self, order):
        self.boot_orders.append(list(order))

    def power_on(self):
        self.powered_on = True
        if self.power_on_err:
            raise self.power_on_err

    def power_off(self):
        self.powered_off = True


@dataclass
class DatastoreMock:
    delete_called: bool = False
    delete_path: str = ""
    delete_err: Exception | None = field(default=None, compare=False)

    def delete(self, path):
        self.delete_called = True
        self.delete_path = path
        if self.delete_err:
            raise self.delete_err


@dataclass
class DriverMock:
    find_datastore_called: bool = False
    find_datastore_name: str = ""
    find_datastore_host: str = ""
    find_datastore_err: Exception | None = field(default=None, compare=False)
    datastore_mock: DatastoreMock | None = None

    def find_datastore(self, name, host):
        self.find_datastore_called = True
        self.find_datastore_name = name
        self.find_datastore_host = host
        if self.find_datastore_err:
            raise self.find_datastore_err
        return self.datastore_mock


def basic_state(vm):
    return StateBag({"ui": Ui(io.StringIO(), io.StringIO()), "vm": vm})


@pytest.mark.parametrize(
    "config, vm, expected_action, expected_vm, err_message",
    [
        (RemoveCDRomConfig(), VirtualMachineMock(), StepAction.CONTINUE,
         VirtualMachineMock(eject_cdroms_called=True), None),
        (RemoveCDRomConfig(),
         VirtualMachineMock(eject_cdroms_err=RuntimeError("failed to eject cd-rom drives")),
         StepAction.HALT, VirtualMachineMock(eject_cdroms_called=True),
         "failed to eject cd-rom drives"),
        (RemoveCDRomConfig(remove_cdrom=True), VirtualMachineMock(), StepAction.CONTINUE,
         VirtualMachineMock(eject_cdroms_called=True, remove_cdroms_called=True), None),
        (RemoveCDRomConfig(remove_cdrom=True),
         VirtualMachineMock(remove_cdroms_err=RuntimeError("failed to delete cd-rom devices")),
         StepAction.HALT,
         VirtualMachineMock(eject_cdroms_called=True, remove_cdroms_called=True),
         "failed to delete cd-rom devices"),
    ],
    ids=["eject", "eject-fails", "eject-and-delete", "delete-fails"],
)
def test_remove_cdrom(config, vm, expected_action, expected_vm, err_message):
    state = basic_state(vm)
    assert StepRemoveCDRom(config).run(state) == expected_action
    error = state.get("error")
    if err_message is None:
        assert error is None
    else:
        assert str(error) == err_message
    assert vm == expected_vm


FLOPPY_PATH = "vm/dir/packer-tmp-created-floppy.flp"
FLOPPY_VM_DONE = dict(floppy_devices_called=True, remove_device_called=True,
                      remove_device_keep_files=True)
FOUND = dict(find_datastore_called=True, find_datastore_name="datastore",
             find_datastore_host="host")


@pytest.mark.parametrize(
    "uploaded, step, vm, expected_vm, driver, expected_driver, ds, expected_ds, action, err",
    [
        (FLOPPY_PATH, StepRemoveFloppy("datastore", "host"), VirtualMachineMock(),
         VirtualMachineMock(**FLOPPY_VM_DONE), DriverMock(), DriverMock(**FOUND),
         DatastoreMock(), DatastoreMock(delete_called=True, delete_path=FLOPPY_PATH),
         StepAction.CONTINUE, None),
        ("", StepRemoveFloppy(), VirtualMachineMock(), VirtualMachineMock(**FLOPPY_VM_DONE),
         DriverMock(), DriverMock(), DatastoreMock(), DatastoreMock(),
         StepAction.CONTINUE, None),
        ("", StepRemoveFloppy(),
         VirtualMachineMock(floppy_devices_err=RuntimeError("failed to find floppy devices")),
         VirtualMachineMock(floppy_devices_called=True), DriverMock(), DriverMock(),
         DatastoreMock(), DatastoreMock(), StepAction.HALT, "failed to find floppy devices"),
        ("", StepRemoveFloppy(),
         VirtualMachineMock(remove_device_err=RuntimeError("failed to remove device")),
         VirtualMachineMock(**FLOPPY_VM_DONE), DriverMock(), DriverMock(),
         DatastoreMock(), DatastoreMock(), StepAction.HALT, "failed to remove device"),
        (FLOPPY_PATH, StepRemoveFloppy("datastore", "host"), VirtualMachineMock(),
         VirtualMachineMock(**FLOPPY_VM_DONE),
         DriverMock(find_datastore_err=RuntimeError("failed to find datastore")),
         DriverMock(**FOUND), DatastoreMock(), DatastoreMock(),
         StepAction.HALT, "failed to find datastore"),
        (FLOPPY_PATH, StepRemoveFloppy("datastore", "host"), VirtualMachineMock(),
         VirtualMachineMock(**FLOPPY_VM_DONE), DriverMock(), DriverMock(**FOUND),
         DatastoreMock(delete_err=RuntimeError("failed to delete floppy")),
         DatastoreMock(delete_called=True, delete_path=FLOPPY_PATH),
         StepAction.HALT, "failed to delete floppy"),
    ],
    ids=["remove-all", "no-image", "find-fails", "remove-fails", "datastore-fails",
         "delete-fails"],
)
def test_remove_floppy(uploaded, step, vm, expected_vm, driver, expected_driver, ds,
                       expected_ds, action, err):
    state = basic_state(vm)
    driver.datastore_mock = ds
    state.put("driver", driver)
    if uploaded:
        state.put("uploaded_floppy_path", uploaded)

    assert step.run(state) == action
    error = state.get("error")
    if err is None:
        assert error is None
        assert "uploaded_floppy_path" not in state
    else:
        assert str(error) == err

    assert vm == expected_vm
    expected_driver.datastore_mock = expected_ds
    assert driver == expected_driver
    assert ds == expected_ds


def test_snapshot_default_and_custom_name():
    vm = VirtualMachineMock()
    assert StepCreateSnapshot(create_snapshot=True).run(basic_state(vm)) == StepAction.CONTINUE
    assert vm.snapshot_name == "Created By Packer"

    vm = VirtualMachineMock()
    StepCreateSnapshot(True, "golden").run(basic_state(vm))
    assert vm.snapshot_name == "golden"


def test_snapshot_skipped_and_failure():
    vm = VirtualMachineMock()
    assert StepCreateSnapshot().run(basic_state(vm)) == StepAction.CONTINUE
    assert vm.snapshot_name is None

    vm = VirtualMachineMock(snapshot_err=RuntimeError("no space"))
    state = basic_state(vm)
    assert StepCreateSnapshot(True).run(state) == StepAction.HALT
    assert str(state.get("error")) == "no space"


def test_convert_to_template():
    vm = VirtualMachineMock()
    assert StepConvertToTemplate(True).run(basic_state(vm)) == StepAction.CONTINUE
    assert vm.converted is True

    vm = VirtualMachineMock()
    StepConvertToTemplate(False).run(basic_state(vm))
    assert vm.converted is False


def test_run_uses_configured_boot_order():
    vm = VirtualMachineMock()
    step = StepRun(RunConfig(boot_order="floppy,cdrom,ethernet,disk"))
    assert step.run(basic_state(vm)) == StepAction.CONTINUE
    assert vm.boot_orders == [["floppy", "cdrom", "ethernet", "disk"]]
    assert vm.powered_on is True


def test_run_temporary_order_is_cleared_in_cleanup():
    vm = VirtualMachineMock()
    state = basic_state(vm)
    step = StepRun(RunConfig(), set_order=True)
    step.run(state)
    step.cleanup(state)
    assert vm.boot_orders == [["disk", "cdrom"], ["-"]]
    assert vm.powered_off is False


def test_run_power_on_failure_halts():
    vm = VirtualMachineMock(power_on_err=RuntimeError("power failure"))
    state = basic_state(vm)
    assert StepRun(RunConfig()).run(state) == StepAction.HALT
    assert str(state.get("error")) == "power failure"


def test_run_cleanup_powers_off_when_halted():
    vm = VirtualMachineMock()
    state = basic_state(vm)
    state.put(STATE_HALTED, True)
    StepRun(RunConfig()).cleanup(state)
    assert vm.powered_off is True
    assert state.get("ui").history[-1] == ("say", "Power off VM...")