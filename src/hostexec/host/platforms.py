"""Platform variants: the per-platform behavior a host needs.

A host does not subclass per platform. It carries one PlatformVariant,
a bundle of defaults and hooks selected by the factory from the host's
declared platform string.
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from hostexec.models import Command

if TYPE_CHECKING:
    from hostexec.host.base import Host


class Platform(Enum):
    """Host platform families with distinct behavior."""

    UNIX = "unix"
    WINDOWS = "windows"
    PSWINDOWS = "pswindows"
    AIX = "aix"
    MAC = "mac"
    FREEBSD = "freebsd"
    EOS = "eos"
    CISCO = "cisco"

    @classmethod
    def detect(cls, platform: str, is_cygwin: Any = None) -> "Platform":
        """Map a declared platform string to a platform family.

        Matching is a case-insensitive substring test. Windows hosts are
        cygwin-backed unless ``is_cygwin`` is explicitly false.
        """
        value = (platform or "").lower()
        if "windows" in value:
            if is_cygwin is None or is_cygwin is True:
                return cls.WINDOWS
            return cls.PSWINDOWS
        if "aix" in value:
            return cls.AIX
        if "osx" in value or "mac" in value:
            return cls.MAC
        if "freebsd" in value:
            return cls.FREEBSD
        if "eos" in value:
            return cls.EOS
        if "cisco" in value:
            return cls.CISCO
        return cls.UNIX


def _noop_init(host: "Host") -> None:
    pass


def _identity_path(host: "Host", path: str) -> str:
    return path


def _noop_post_copy(host: "Host", scp_target: str, target_path: str) -> None:
    pass


def _posix_file_exist(path: str) -> str:
    return f"test -e {shlex.quote(path)}"


def _posix_mkdir_p(path: str) -> str:
    return f"mkdir -p {shlex.quote(path)}"


def _posix_environment(env: dict[str, str]) -> str:
    if not env:
        return ""
    pairs = " ".join(f'{key}="{value}"' for key, value in env.items())
    return f"env {pairs}"


def _cmd_file_exist(path: str) -> str:
    return f'if exist "{path}" ( exit /B 0 ) else ( exit /B 1 )'


def _cmd_mkdir_p(path: str) -> str:
    return f'if not exist "{path}" ( md "{path}" )'


def _cmd_environment(env: dict[str, str]) -> str:
    if not env:
        return ""
    return " ".join(f'set "{key}={value}" &&' for key, value in env.items())


def _windows_init(host: "Host") -> None:
    host["is_cygwin"] = True


def _pswindows_init(host: "Host") -> None:
    host["is_cygwin"] = False


def _pswindows_scp_path(host: "Host", path: str) -> str:
    return path.replace("/", "\\")


def _cygwin_post_copy(host: "Host", scp_target: str, target_path: str) -> None:
    # files copied over cygwin sshd land owned by the sshd account
    owner = f"{host['user']}:{host['group']}"
    host.exec(Command(f"chown -R {owner} {shlex.quote(scp_target)}"), acceptable_exit_codes=[0, 1])


@dataclass
class PlatformVariant:
    """Capabilities a platform contributes to a host."""

    platform: Platform
    defaults: dict[str, Any] = field(default_factory=dict)
    init_hook: Callable[["Host"], None] = _noop_init
    scp_path: Callable[["Host", str], str] = _identity_path
    scp_post_operations: Callable[["Host", str, str], None] = _noop_post_copy
    file_exist_command: Callable[[str], str] = _posix_file_exist
    mkdir_p_command: Callable[[str], str] = _posix_mkdir_p
    environment_string: Callable[[dict[str, str]], str] = _posix_environment


UNIX_DEFAULTS = {
    "user": "root",
    "group": "root",
    "pathseparator": ":",
    "tmpdir": "/tmp",
}

WINDOWS_DEFAULTS = {
    "user": "Administrator",
    "group": "Administrators",
    "pathseparator": ";",
}


class VariantRegistry:
    """Registry of platform variants."""

    _variants: dict[Platform, PlatformVariant] = {}

    @classmethod
    def register(cls, variant: PlatformVariant) -> None:
        """Register a variant for its platform.

        Args:
            variant: The variant to register.
        """
        cls._variants[variant.platform] = variant

    @classmethod
    def get(cls, platform: Platform) -> PlatformVariant:
        """Get the variant for a platform.

        Raises:
            ValueError: If no variant is registered for the platform.
        """
        if platform not in cls._variants:
            raise ValueError(f"No host variant registered for platform: {platform.value}")
        return cls._variants[platform]

    @classmethod
    def platforms(cls) -> list[Platform]:
        return list(cls._variants.keys())


VariantRegistry.register(PlatformVariant(Platform.UNIX, defaults=dict(UNIX_DEFAULTS)))
VariantRegistry.register(
    PlatformVariant(Platform.AIX, defaults={**UNIX_DEFAULTS, "group": "system"})
)
VariantRegistry.register(
    PlatformVariant(Platform.MAC, defaults={**UNIX_DEFAULTS, "group": "wheel"})
)
VariantRegistry.register(
    PlatformVariant(Platform.FREEBSD, defaults={**UNIX_DEFAULTS, "group": "wheel"})
)
VariantRegistry.register(PlatformVariant(Platform.EOS, defaults=dict(UNIX_DEFAULTS)))
VariantRegistry.register(
    PlatformVariant(Platform.CISCO, defaults={**UNIX_DEFAULTS, "user": "admin", "group": "network-admin"})
)
VariantRegistry.register(
    PlatformVariant(
        Platform.WINDOWS,
        defaults={**WINDOWS_DEFAULTS, "tmpdir": "/cygdrive/c/Windows/Temp"},
        init_hook=_windows_init,
        scp_post_operations=_cygwin_post_copy,
    )
)
VariantRegistry.register(
    PlatformVariant(
        Platform.PSWINDOWS,
        defaults={**WINDOWS_DEFAULTS, "tmpdir": "C:\\Windows\\Temp"},
        init_hook=_pswindows_init,
        scp_path=_pswindows_scp_path,
        file_exist_command=_cmd_file_exist,
        mkdir_p_command=_cmd_mkdir_p,
        environment_string=_cmd_environment,
    )
)
