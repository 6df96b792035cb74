"""Hosts and the platform variants they are built from."""

from hostexec.host.base import Host
from hostexec.host.factory import HostFactory, create_host
from hostexec.host.platforms import Platform, PlatformVariant, VariantRegistry

__all__ = [
    "Host",
    "HostFactory",
    "create_host",
    "Platform",
    "PlatformVariant",
    "VariantRegistry",
]
