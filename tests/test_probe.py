"""
Tests for the environment probe — each heuristic, and the classification policy.
"""

from devsetup.core.models.environment import EnvironmentKind
from devsetup.core.services.probe import EnvironmentProbe, ProbeSignals, classify, parse_os_release


# ── Termux markers ──────────────────────────────────────────────


class TestTermux:
    def test_termux_version_env(self, fake_host):
        probe = fake_host.probe({"TERMUX_VERSION": "0.118.0"})
        assert probe.detect() == EnvironmentKind.TERMUX

    def test_prefix_with_pkg(self, fake_host):
        fake_host.termux_prefix()
        signals = fake_host.probe().signals()
        assert signals.termux_prefix
        assert not signals.termux_env
        assert classify(signals) == EnvironmentKind.TERMUX

    def test_custom_prefix_env(self, fake_host):
        fake_host.termux_prefix("/opt/termux/usr")
        signals = fake_host.probe({"PREFIX": "/opt/termux/usr"}).signals()
        assert signals.termux_prefix

    def test_prefix_without_pkg_is_not_termux(self, fake_host):
        (fake_host.root / "data/data/com.termux/files/usr/bin").mkdir(parents=True)
        assert fake_host.probe().detect() == EnvironmentKind.UNKNOWN


# ── proot signals ───────────────────────────────────────────────


class TestProotAncestry:
    def test_proot_parent(self, fake_host):
        fake_host.process(fake_host.pid, "bash", ppid=100)
        fake_host.process(100, "proot", ppid=1)
        signals = fake_host.probe().signals()
        assert signals.proot_ancestor == "proot (pid 100)"

    def test_proot_grandparent(self, fake_host):
        fake_host.process(fake_host.pid, "python3", ppid=300)
        fake_host.process(300, "bash", ppid=200)
        fake_host.process(200, "proot", ppid=1)
        assert fake_host.probe().signals().proot_ancestor == "proot (pid 200)"

    def test_proot_tracer(self, fake_host):
        fake_host.process(fake_host.pid, "python3", ppid=1, tracer=77)
        fake_host.process(77, "proot", ppid=1)
        assert fake_host.probe().signals().proot_ancestor == "proot (tracer pid 77)"

    def test_non_proot_tracer_ignored(self, fake_host):
        fake_host.process(fake_host.pid, "python3", ppid=1, tracer=77)
        fake_host.process(77, "gdb", ppid=1)
        assert fake_host.probe().signals().proot_ancestor is None

    def test_no_ancestor(self, fake_host):
        fake_host.process(fake_host.pid, "python3", ppid=100)
        fake_host.process(100, "bash", ppid=1)
        assert fake_host.probe().signals().proot_ancestor is None

    def test_cycle_terminates(self, fake_host):
        fake_host.process(fake_host.pid, "python3", ppid=300)
        fake_host.process(300, "bash", ppid=fake_host.pid)
        assert fake_host.probe().signals().proot_ancestor is None

    def test_missing_procfs(self, tmp_path, fake_host):
        from devsetup.core.services.probe import EnvironmentProbe

        probe = EnvironmentProbe(environ={}, root=fake_host.root, proc=tmp_path / "nope", pid=fake_host.pid)
        assert probe.signals().proot_ancestor is None


class TestProotMarker:
    def test_env_var(self, fake_host):
        signals = fake_host.probe({"PROOT_TMP_DIR": "/tmp"}).signals()
        assert signals.proot_marker == "$PROOT_TMP_DIR"

    def test_faked_proc_version(self, fake_host):
        fake_host.proc_version("Linux version 6.2.1-PRoot-Distro (proot@termux)")
        assert fake_host.probe().signals().proot_marker == "/proc/version"

    def test_plain_proc_version(self, fake_host):
        fake_host.proc_version("Linux version 6.1.0 (gcc 12.2.0)")
        assert fake_host.probe().signals().proot_marker is None

    def test_marker_file(self, fake_host):
        (fake_host.root / ".proot").touch()
        assert fake_host.probe().signals().proot_marker == "/.proot"


class TestRootInode:
    def test_mismatch(self, fake_host):
        fake_host.init_root(same=False)
        assert fake_host.probe().signals().root_inode_mismatch

    def test_same_root(self, fake_host):
        fake_host.init_root(same=True)
        assert not fake_host.probe().signals().root_inode_mismatch

    def test_unreadable_is_no_evidence(self, fake_host):
        assert not fake_host.probe().signals().root_inode_mismatch


class TestBindMounts:
    MOUNTINFO = "25 1 0:22 /data/data/com.termux/files/home /root rw - ext4 /dev/block rw\n"

    def test_evidence(self, fake_host):
        fake_host.mountinfo(self.MOUNTINFO)
        assert fake_host.probe().signals().bind_mounts

    def test_counts_without_termux_marker(self, fake_host):
        fake_host.mountinfo(self.MOUNTINFO).os_release("ubuntu")
        kind = fake_host.probe(tools={"apt-get"}).detect()
        assert kind == EnvironmentKind.UBUNTU_PROOT

    def test_ignored_with_termux_marker(self, fake_host):
        fake_host.mountinfo(self.MOUNTINFO)
        kind = fake_host.probe({"TERMUX_VERSION": "0.118.0"}).detect()
        assert kind == EnvironmentKind.TERMUX


# ── Classification policy ───────────────────────────────────────


class TestClassification:
    def test_proot_wins_over_inherited_termux_env(self, fake_host):
        fake_host.process(fake_host.pid, "bash", ppid=100)
        fake_host.process(100, "proot", ppid=1)
        fake_host.termux_prefix().os_release("ubuntu")
        probe = fake_host.probe({"TERMUX_VERSION": "0.118.0"}, tools={"apt-get"})
        assert probe.detect() == EnvironmentKind.UBUNTU_PROOT

    def test_ubuntu_without_apt_is_other(self, fake_host):
        fake_host.proc_version("PRoot").os_release("ubuntu")
        assert fake_host.probe().detect() == EnvironmentKind.OTHER_PROOT

    def test_ubuntu_derivative(self, fake_host):
        fake_host.proc_version("PRoot").os_release("pop", id_like="ubuntu debian")
        assert fake_host.probe(tools={"apt"}).detect() == EnvironmentKind.UBUNTU_PROOT

    def test_other_distribution_fails_closed(self, fake_host):
        fake_host.proc_version("PRoot").os_release("alpine")
        assert fake_host.probe(tools={"apt-get"}).detect() == EnvironmentKind.OTHER_PROOT

    def test_container_without_os_release(self, fake_host):
        fake_host.init_root(same=False)
        assert fake_host.probe(tools={"apt-get"}).detect() == EnvironmentKind.OTHER_PROOT

    def test_plain_linux_is_unknown(self, fake_host):
        fake_host.os_release("debian").init_root(same=True)
        assert fake_host.probe(tools={"apt-get"}).detect() == EnvironmentKind.UNKNOWN

    def test_deterministic(self, fake_host):
        fake_host.proc_version("PRoot").os_release("ubuntu")
        probe = fake_host.probe(tools={"apt-get"})
        assert probe.detect() == probe.detect()
        assert probe.signals() == probe.signals()

    def test_classify_signals_directly(self):
        assert classify(ProbeSignals()) == EnvironmentKind.UNKNOWN
        assert classify(ProbeSignals(termux_env=True)) == EnvironmentKind.TERMUX
        assert classify(ProbeSignals(
            termux_env=True, root_inode_mismatch=True, os_id="ubuntu", apt_available=True,
        )) == EnvironmentKind.UBUNTU_PROOT

    def test_signals_to_dict(self):
        data = ProbeSignals(termux_env=True).to_dict()
        assert data["termux_marker"] is True
        assert data["in_container"] is False


class TestParseOsRelease:
    def test_quotes_and_comments(self):
        text = '# comment\nNAME="Ubuntu"\nID=ubuntu\nVERSION_ID=\'22.04\'\n\nbogus line\n'
        assert parse_os_release(text) == {"NAME": "Ubuntu", "ID": "ubuntu", "VERSION_ID": "22.04"}

    def test_usr_lib_fallback(self, fake_host):
        lib = fake_host.root / "usr" / "lib"
        lib.mkdir(parents=True)
        (lib / "os-release").write_text("ID=ubuntu\n")
        assert fake_host.probe().signals().os_id == "ubuntu"


def test_detect_on_real_host():
    assert isinstance(EnvironmentProbe().detect(), EnvironmentKind)
