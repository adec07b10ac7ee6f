# vsphere-steps

Building blocks for an image build pipeline that targets vSphere. The package
provides configuration objects that check their settings and fill in their own
defaults, and a set of steps that each do one part of a build: connect to
vCenter, configure hardware, add configuration parameters, find the host's
HTTP address, upload ISO images, boot the VM, wait for its IP address, shut it
down, take a snapshot, convert it into a template, import it into a content
library or export it as OVF.

## What the package does not do

- It does not talk to vSphere itself. Every step works through driver,
  datastore, virtual-machine and UI objects that the caller places in a shared
  `StateBag`. The caller supplies these objects, backed by a vSphere client
  library of their choice or by test doubles.
- `StepConnect` does not open a session on its own: it calls a `new_driver`
  function that the caller passes in.
- There is no step that types a boot command on the VM's keyboard, no HTTP
  server for serving files to the guest, and no command-line program.
- There is no runner: the caller runs the steps in order and calls their
  `cleanup` methods, as shown below.

## Installation

```
pip install vsphere-steps
```

To run the tests:

```
pip install "vsphere-steps[test]"
pytest
```

## Concepts

- `vsphere_steps.multistep.StateBag` holds the shared state of one build:
  `"ui"`, `"driver"`, `"vm"`, and the values that steps produce, such as
  `"http_ip"`, `"ip"` and `"iso_remote_path"`. When a step fails it stores the
  exception under `"error"` and returns `StepAction.HALT`. The keys
  `multistep.STATE_CANCELLED` and `multistep.STATE_HALTED` mark a build that was
  cancelled or halted; some `cleanup` methods only act when one is present.
- `vsphere_steps.multistep.Step` is the base class of every step:
  `run(state, cancel)` returns a `StepAction` (`CONTINUE` or `HALT`), and
  `cleanup(state)` undoes whatever the step needs undoing. `cancel` is an
  optional `threading.Event`.
- `vsphere_steps.multistep.Ui` writes `say` and `message` text to standard
  output and `error` text to standard error, and keeps every message in its
  `history` list as `(kind, message)` pairs.
- `vsphere_steps.multistep.ConfigError` is raised by `prepare()` when settings
  are invalid; its `errors` attribute lists every problem found.
  `StepError` is the exception steps store under `"error"` when they wrap a
  failure with their own message.

## Validating configuration

```python
from vsphere_steps.hardware import HardwareConfig
from vsphere_steps.multistep import ConfigError
from vsphere_steps.storage import DiskConfig, StorageConfig

hardware = HardwareConfig(cpus=2, ram=4096, firmware="efi", vtpm_enabled=True)
hardware.prepare()  # valid: nothing is raised

storage = StorageConfig(
    disk_controller_type=["pvscsi"],
    storage=[DiskConfig(disk_size=0, disk_controller_index=1)],
)
try:
    storage.prepare()
except ConfigError as err:
    for problem in err.errors:
        print(problem)
```

`prepare()` fills in defaults and raises `ConfigError` listing every invalid
setting. A few configurations take an argument:

- `ShutdownConfig.prepare(communicator_type)` sets the timeout to five minutes
  when none is given and returns a list of warnings instead of raising.
- `ContentLibraryDestinationConfig.prepare(location)` and
  `ExportConfig.prepare(location)` take an object with a `vm_name` attribute
  (and, for the content library, `cluster`, `host` and `resource_pool`) to
  take defaults from. `ExportConfig.prepare` also creates the output directory.
- `WaitIpConfig.prepare()` defaults to a 30 minute wait, a 5 second settle time
  and the `0.0.0.0/0` address range; `ipnet()` returns the parsed network.

## Running steps

```python
import threading

from vsphere_steps.hardware import StepConfigureHardware
from vsphere_steps.lifecycle import StepConvertToTemplate, StepCreateSnapshot
from vsphere_steps.multistep import StateBag, StepAction, Ui

state = StateBag()
state.put("ui", Ui())
state.put("vm", my_vm)

cancel = threading.Event()
steps = [
    StepConfigureHardware(config=hardware),
    StepCreateSnapshot(create_snapshot=True),
    StepConvertToTemplate(convert_to_template=True),
]
for step in steps:
    if step.run(state, cancel) is StepAction.HALT:
        print("build failed:", state.get("error"))
        break
for step in reversed(steps):
    step.cleanup(state)
```

Here `my_vm` stands for your own object implementing the virtual-machine
operations the steps call, such as `configure`, `create_snapshot` and
`convert_to_template`. Setting the `cancel` event asks long-running steps,
such as waiting for an IP address or for shutdown, to stop early.

## Modules

| Module | Contents |
| --- | --- |
| `multistep` | `StepAction`, `StateBag`, `Ui`, `Step`, `ConfigError`, `StepError` |
| `connect` | `ConnectConfig`, `StepConnect` |
| `hardware` | `HardwareConfig`, `DriverHardwareConfig`, `StepConfigureHardware` |
| `storage` | `DiskConfig`, `StorageConfig` |
| `config_params` | `ConfigParamsConfig`, `ToolsConfigInfo`, `StepConfigParams` |
| `lifecycle` | `StepCreateSnapshot`, `StepConvertToTemplate`, `RunConfig`, `StepRun`, `RemoveCDRomConfig`, `StepRemoveCDRom`, `StepRemoveFloppy` |
| `shutdown` | `ShutdownConfig`, `RemoteCmd`, `StepShutdown` |
| `http_ip` | `get_host_ip`, `StepHTTPIPDiscover` |
| `remote_upload` | `RemoteLocation`, `get_remote_directory_and_path`, `StepRemoteUpload` |
| `download` | `DownloadStep`, `StepDownload` |
| `wait_for_ip` | `WaitIpConfig`, `wait_for_stable_ip`, `IpWaitCancelled`, `StepWaitForIp` |
| `content_library` | `ContentLibraryDestinationConfig`, `OvfTemplate`, `VmTemplate`, `StepImportToContentLibrary` |
| `export` | `ExportConfig`, `get_target`, `FileItem`, `OvfFile`, `OvfCreateDescriptorParams`, `StepExport` |