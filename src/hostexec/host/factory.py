"""Host construction from declared platform and configuration."""

import logging
from typing import Any, Optional

from hostexec.config import default_options
from hostexec.host.base import Host
from hostexec.host.platforms import Platform, VariantRegistry
from hostexec.output import HostOutput

logger = logging.getLogger(__name__)


class HostFactory:
    """Factory for creating hosts with the right platform variant."""

    @classmethod
    def create(
        cls,
        name: str,
        host_hash: dict[str, Any],
        options: Optional[dict[str, Any]] = None,
        output: Optional[HostOutput] = None,
    ) -> Host:
        """Create a host for a declared platform.

        Args:
            name: Host name.
            host_hash: Host settings; ``platform`` selects the variant and
                ``is_cygwin`` picks between cygwin and native windows.
            options: Global options. Defaults are used when omitted.
            output: Console writer for streamed command output.

        Returns:
            A Host.
        """
        platform = Platform.detect(host_hash.get("platform", ""), host_hash.get("is_cygwin"))
        variant = VariantRegistry.get(platform)
        logger.debug("Creating %s host %s", platform.value, name)
        if options is None:
            options = default_options()
        return Host(name, host_hash, options, variant, output=output)

    @classmethod
    def create_all(
        cls,
        hosts: dict[str, dict[str, Any]],
        options: Optional[dict[str, Any]] = None,
        output: Optional[HostOutput] = None,
    ) -> dict[str, Host]:
        """Create every host of a parsed hosts file, keyed by name."""
        return {name: cls.create(name, host_hash, options, output) for name, host_hash in hosts.items()}


def create_host(
    name: str,
    host_hash: dict[str, Any],
    options: Optional[dict[str, Any]] = None,
    output: Optional[HostOutput] = None,
) -> Host:
    """Shorthand for HostFactory.create."""
    return HostFactory.create(name, host_hash, options, output)
