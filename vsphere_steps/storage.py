"""Disk storage settings for a virtual machine."""

from __future__ import annotations

from dataclasses import dataclass, field

from .multistep import ConfigError


@dataclass
class DiskConfig:
    """One disk to provision; sizes are in MB."""

    disk_size: int = 0
    disk_thin_provisioned: bool = False
    disk_eagerly_scrub: bool = False
    disk_controller_index: int = 0


@dataclass
class StorageConfig:
    """Disk controllers and the disks attached to them."""

    disk_controller_type: list[str] = field(default_factory=list)
    storage: list[DiskConfig] = field(default_factory=list)

    def prepare(self) -> None:
        """Validate every disk; raise ConfigError listing every problem."""
        errors = []
        for index, disk in enumerate(self.storage):
            if disk.disk_size == 0:
                errors.append(f"storage[{index}].'disk_size' is required")
            if disk.disk_controller_index >= len(self.disk_controller_type):
                errors.append(
                    f"storage[{index}].'disk_controller_index' references an unknown disk controller"
                )
        if errors:
            raise ConfigError(errors)