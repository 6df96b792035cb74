"""Tests for host construction and platform variants."""

import pytest

from hostexec.config import default_options
from hostexec.host import Host, HostFactory, Platform, VariantRegistry, create_host


class TestPlatformDetection:
    """Tests for Platform.detect."""

    @pytest.mark.parametrize(
        "declared, expected",
        [
            ("el-9-x86_64", Platform.UNIX),
            ("ubuntu-22.04-amd64", Platform.UNIX),
            ("windows-2019-64", Platform.WINDOWS),
            ("WINDOWS-2022", Platform.WINDOWS),
            ("aix-7.2-power", Platform.AIX),
            ("osx-13-arm64", Platform.MAC),
            ("macos-14", Platform.MAC),
            ("freebsd-13-amd64", Platform.FREEBSD),
            ("eos-4-i386", Platform.EOS),
            ("cisco_nexus-7-x86_64", Platform.CISCO),
            ("", Platform.UNIX),
        ],
    )
    def test_detect(self, declared, expected):
        """Test case-insensitive substring matching."""
        assert Platform.detect(declared) == expected

    def test_windows_cygwin_flag(self):
        """Test that is_cygwin picks the windows variant."""
        assert Platform.detect("windows-2019", None) == Platform.WINDOWS
        assert Platform.detect("windows-2019", True) == Platform.WINDOWS
        assert Platform.detect("windows-2019", False) == Platform.PSWINDOWS

    def test_every_platform_registered(self):
        """Test that every platform has a variant."""
        assert set(VariantRegistry.platforms()) == set(Platform)


class TestHostFactory:
    """Tests for HostFactory."""

    def test_creates_host_with_variant(self):
        """Test that the variant follows the declared platform."""
        host = HostFactory.create("win", {"platform": "windows-2019"}, default_options())

        assert isinstance(host, Host)
        assert host.variant.platform == Platform.WINDOWS
        assert host.is_cygwin
        assert not host.is_powershell
        assert host["is_cygwin"] is True

    def test_native_windows(self):
        """Test the native windows variant."""
        host = create_host("win", {"platform": "windows-2019", "is_cygwin": False})

        assert host.is_powershell
        assert host["is_cygwin"] is False
        assert host.variant.scp_path(host, "C:/temp/x") == "C:\\temp\\x"

    def test_defaults_merged_under_declared(self):
        """Test that declared values win over platform defaults."""
        host = create_host("mac1", {"platform": "osx-13", "user": "builder"})

        assert host["user"] == "builder"
        assert host["group"] == "wheel"
        assert host["tmpdir"] == "/tmp"

    def test_packaging_platform_defaults_to_platform(self):
        """Test that packaging_platform falls back to platform."""
        host = create_host("web", {"platform": "el-9-x86_64"})
        assert host["packaging_platform"] == "el-9-x86_64"

        host = create_host("web", {"platform": "el-9-x86_64", "packaging_platform": "el-8-x86_64"})
        assert host["packaging_platform"] == "el-8-x86_64"

    def test_configuration_is_copied(self):
        """Test that callers cannot change a host through their dicts."""
        host_hash = {"platform": "el-9-x86_64", "ssh": {"port": 22}}
        options = default_options({"trace_limit": 5})

        host = HostFactory.create("web", host_hash, options)
        host_hash["ssh"]["port"] = 2222
        host_hash["user"] = "mallory"
        options["trace_limit"] = 99

        assert host["ssh"] == {"port": 22}
        assert host["user"] == "root"
        assert host["trace_limit"] == 5

    def test_global_options_fallback(self):
        """Test that global options are visible through the host."""
        host = create_host("web", {"platform": "el-9"}, default_options({"hypervisor": "docker"}))
        assert host["hypervisor"] == "docker"
        assert "hypervisor" in host

    def test_create_all(self):
        """Test building every host from a hosts mapping."""
        hosts = HostFactory.create_all(
            {"web": {"platform": "el-9"}, "win": {"platform": "windows-2019"}},
            default_options(),
        )

        assert set(hosts) == {"web", "win"}
        assert hosts["win"].variant.platform == Platform.WINDOWS

    def test_create_host_forwards_output(self, output):
        """Test that create_host hands the output writer to the host."""
        host = create_host("web", {"platform": "el-9"}, default_options(), output)
        assert host.output is output


class TestHostIdentity:
    """Tests for host naming."""

    def test_hostname_and_reachable_name(self):
        """Test hostname, reachable name and log prefix."""
        host = create_host("web", {"platform": "el-9"})

        assert host.hostname == "web"
        assert host.reachable_name == "web"
        assert str(host) == "web"
        assert host.log_prefix == "web"

        host["vmhostname"] = "web-abc123.example.com"
        assert host.hostname == "web-abc123.example.com"
        assert host.reachable_name == "web-abc123.example.com"
        assert host.log_prefix == "web-abc123.example.com (web)"

        host["ip"] = "10.1.1.1"
        assert host.reachable_name == "10.1.1.1"

    def test_delete(self):
        """Test removing a host value."""
        host = create_host("web", {"platform": "el-9", "ip": "10.1.1.1"})
        host.delete("ip")
        assert host["ip"] is None
