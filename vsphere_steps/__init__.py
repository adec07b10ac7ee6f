"""Configuration validation and build steps for producing vSphere virtual machine images."""

__version__ = "0.1.0"