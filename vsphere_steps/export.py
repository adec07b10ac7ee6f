"""Exporting the built VM as an OVF package to the local machine."""

from __future__ import annotations

import dataclasses
import hashlib
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from .multistep import ConfigError, StateBag, Step, StepAction, StepError

DEFAULT_MANIFEST = "sha256"
DEFAULT_DIRECTORY_PERMISSION = 0o750

_HASHES: dict[str, Callable[[], Any] | None] = {
    "none": None,
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


class Location(Protocol):
    """The part of the VM location the export name defaults to."""

    vm_name: str


def get_target(directory: str, name: str) -> str:
    """Return the path of the OVF descriptor for ``name`` in ``directory``."""
    return os.path.join(directory, name + ".ovf")


@dataclass
class ExportConfig:
    """Settings for exporting the VM as an OVF package."""

    name: str = ""
    force: bool = False
    images: bool = False
    image_files: bool = False
    manifest: str = ""
    output_directory: str = ""
    directory_permission: int = DEFAULT_DIRECTORY_PERMISSION
    options: list[str] = field(default_factory=list)

    def prepare(self, location: Location) -> None:
        """Fill in defaults, create the output directory; raise ConfigError on problems."""
        errors = []

        if not self.manifest:
            self.manifest = DEFAULT_MANIFEST

        if self.images:
            self.image_files = self.images

        if self.manifest not in _HASHES:
            errors.append(
                f"unknown hash: {self.manifest}: available options include available "
                "options being 'none', 'sha1', 'sha256', 'sha512'"
            )

        if not self.name:
            self.name = location.vm_name

        target = get_target(self.output_directory, self.name)
        if not self.force and os.path.exists(target):
            errors.append(f"file already exists: {target}")

        try:
            os.makedirs(self.output_directory, self.directory_permission, exist_ok=True)
        except OSError as err:
            errors.append(f"unable to make directory for export: {err}")

        if errors:
            raise ConfigError(errors)


@dataclass
class OvfFile:
    """A file entry in the OVF descriptor."""

    device_id: str
    path: str
    size: int = 0


@dataclass
class FileItem:
    """A file offered for download by an export lease."""

    path: str
    device_id: str = ""
    size: int = 0

    def file(self) -> OvfFile:
        return OvfFile(device_id=self.device_id, path=self.path, size=self.size)


@dataclass
class OvfCreateDescriptorParams:
    """What the OVF descriptor is built from."""

    name: str
    export_option: list[str] = field(default_factory=list)
    ovf_files: list[OvfFile] = field(default_factory=list)


def _fail(state: StateBag, message: str, err: BaseException) -> StepAction:
    error = StepError(f"{message}: {err}")
    error.__cause__ = err
    state.put("error", error)
    return StepAction.HALT


class StepExport(Step):
    """Download the VM disks, write the OVF descriptor and a manifest."""

    def __init__(self, name: str = "", force: bool = False, image_files: bool = False,
                 manifest: str = DEFAULT_MANIFEST, output_dir: str = "",
                 options: list[str] | None = None):
        self.name = name
        self.force = force
        self.image_files = image_files
        self.manifest = manifest
        self.output_dir = output_dir
        self.options = list(options or [])
        self._manifest_lines: list[str] = []

    @classmethod
    def from_config(cls, config: ExportConfig) -> "StepExport":
        return cls(name=config.name, force=config.force, image_files=config.image_files,
                   manifest=config.manifest, output_dir=config.output_directory,
                   options=config.options)

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        vm = state.get("vm")

        ui.message("Starting export...")
        try:
            lease = vm.export()
        except Exception as err:
            return _fail(state, "error exporting vm", err)

        try:
            info = lease.wait(cancel)
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT

        updater = lease.start_updater(cancel, info)
        try:
            return self._export(state, ui, vm, lease, info, cancel)
        finally:
            updater.done()

    def _export(self, state: StateBag, ui: Any, vm: Any, lease: Any, info: Any,
                cancel: threading.Event | None) -> StepAction:
        params = OvfCreateDescriptorParams(name=self.name)

        manager = vm.new_ovf_manager()
        if self.options:
            try:
                export_options = vm.get_ovf_export_options(manager)
            except Exception as err:
                state.put("error", err)
                return StepAction.HALT
            known = {option.option for option in export_options}
            unknown = [option for option in self.options if option not in known]
            params.export_option.extend(self.options)
            # vCenter ignores unknown options, so they are only reported.
            if unknown:
                ui.error(f"unknown export options {','.join(unknown)}")

        for item in info.items:
            if not self._include(item):
                continue
            if not item.path.startswith(self.name):
                item = dataclasses.replace(item, path=f"{self.name}-{item.path}")

            ovf_file = item.file()
            ui.message("Downloading: " + ovf_file.path)
            try:
                size = self.download(cancel, lease, item)
            except Exception as err:
                state.put("error", err)
                return StepAction.HALT

            ovf_file.size = size
            ui.message("Exporting file: " + ovf_file.path)
            params.ovf_files.append(ovf_file)

        try:
            lease.complete(cancel)
        except Exception as err:
            return _fail(state, "unable to complete lease", err)

        try:
            descriptor = vm.create_descriptor(manager, params)
        except Exception as err:
            return _fail(state, "unable to create descriptor", err)

        target = get_target(self.output_dir, self.name)
        try:
            handle = open(target, "wb")
        except OSError as err:
            return _fail(state, "unable to create file: " + target, err)

        digest = self._new_hash()
        ui.message("Writing ovf...")
        data = descriptor.ovf_descriptor.encode()
        with handle:
            try:
                handle.write(data)
            except OSError as err:
                return _fail(state, "unable to write descriptor", err)
        if digest is not None:
            digest.update(data)

        if self.manifest == "none":
            return StepAction.CONTINUE

        ui.message("Creating manifest...")
        self._add_hash(os.path.basename(target), digest)

        manifest_path = os.path.join(self.output_dir, self.name + ".mf")
        content = "".join(self._manifest_lines)
        self._manifest_lines.clear()
        try:
            with open(manifest_path, "w", encoding="utf-8") as handle:
                handle.write(content)
        except OSError as err:
            return _fail(state, "unable to write manifest", err)

        ui.message("Finished exporting...")
        return StepAction.CONTINUE

    def _include(self, item: FileItem) -> bool:
        if self.image_files:
            return True
        return os.path.splitext(item.path)[1] == ".vmdk"

    def _new_hash(self) -> Any:
        factory = _HASHES.get(self.manifest)
        return factory() if factory is not None else None

    def _add_hash(self, path: str, digest: Any) -> None:
        if digest is None:
            return
        self._manifest_lines.append(f"{self.manifest.upper()}({path})= {digest.hexdigest()}\n")

    def download(self, cancel: threading.Event | None, lease: Any, item: FileItem) -> int:
        """Download ``item`` into the output directory and return its size."""
        path = os.path.join(self.output_dir, item.path)
        digest = self._new_hash()
        try:
            lease.download_file(cancel, path, item, digest)
        finally:
            self._add_hash(item.path, digest)
        return os.stat(path).st_size