"""Importing the built VM into a content library."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Protocol

from .multistep import ConfigError, StateBag, Step, StepAction


class Location(Protocol):
    """The parts of the VM location that defaults are taken from."""

    vm_name: str
    cluster: str
    host: str
    resource_pool: str


@dataclass
class ContentLibraryDestinationConfig:
    """Where and how the VM is stored as a library item."""

    library: str = ""
    name: str = ""
    description: str = ""
    cluster: str = ""
    folder: str = ""
    host: str = ""
    resource_pool: str = ""
    datastore: str = ""
    destroy: bool = False
    ovf: bool = False
    skip_import: bool = False
    ovf_flags: list[str] = field(default_factory=list)

    def prepare(self, location: Location) -> None:
        """Fill in defaults from ``location``; raise ConfigError on problems."""
        errors = []
        if not self.library:
            errors.append("a library name must be provided")

        if self.ovf:
            if not self.name:
                self.name = location.vm_name
        else:
            if self.name == location.vm_name:
                errors.append(
                    "the content library destination name must be different from the VM name"
                )
            if not self.name:
                # A timestamp keeps the template name apart from the source VM's.
                self.name = f"{location.vm_name}{int(time.time())}"
            if not self.cluster:
                self.cluster = location.cluster
            if not self.host:
                self.host = location.host
            if not self.resource_pool:
                self.resource_pool = location.resource_pool

        if not self.description:
            self.description = f"Packer imported {location.vm_name} VM template"

        if errors:
            raise ConfigError(errors)


@dataclass
class OvfTemplate:
    """An OVF package to create in a library."""

    name: str
    description: str
    library_id: str
    flags: list[str] = field(default_factory=list)


@dataclass
class VmTemplate:
    """A VM template to create in a library, with its placement."""

    name: str
    description: str
    library: str
    cluster: str = ""
    folder: str = ""
    host: str = ""
    resource_pool: str = ""
    datastore: str | None = None


class StepImportToContentLibrary(Step):
    """Import the VM as a VM or OVF template into a content library."""

    def __init__(self, config: ContentLibraryDestinationConfig):
        self.config = config

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        ui = state.get("ui")
        cfg = self.config
        if cfg.skip_import:
            ui.say("Skipping import...")
            return StepAction.CONTINUE

        vm = state.get("vm")

        ui.say("Clear boot order...")
        try:
            vm.set_boot_order(["-"])
        except Exception as err:
            state.put("error", err)
            return StepAction.HALT

        label = "VM OVF" if cfg.ovf else "VM"
        ui.say(f"Importing {label} template {cfg.name} to Content Library '{cfg.library}' "
               f"as the item '{cfg.name}' with the description '{cfg.description}'...")
        try:
            if cfg.ovf:
                vm.import_ovf_to_content_library(self._ovf_template())
            else:
                vm.import_to_content_library(self._vm_template())
        except Exception as err:
            ui.error(f"Failed to import template {cfg.name}: {err}")
            state.put("error", err)
            return StepAction.HALT

        if cfg.destroy:
            state.put("destroy_vm", cfg.destroy)

        try:
            datastores = vm.find_content_library_template_datastore_name(cfg.library)
        except Exception as err:
            ui.say(f"[TRACE] Failed to get Content Library datastore name: {err}")
        else:
            state.put("content_library_datastore", datastores)

        return StepAction.CONTINUE

    def _ovf_template(self) -> OvfTemplate:
        cfg = self.config
        return OvfTemplate(name=cfg.name, description=cfg.description,
                           library_id=cfg.library, flags=list(cfg.ovf_flags))

    def _vm_template(self) -> VmTemplate:
        cfg = self.config
        return VmTemplate(
            name=cfg.name,
            description=cfg.description,
            library=cfg.library,
            cluster=cfg.cluster,
            folder=cfg.folder,
            host=cfg.host,
            resource_pool=cfg.resource_pool,
            datastore=cfg.datastore or None,
        )

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""