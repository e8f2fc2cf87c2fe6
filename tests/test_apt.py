"""
Tests for the apt / dpkg backend.
"""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from dotpkg.adapters.managers.apt import (
    AptManager,
    join_installed,
    parse_search,
    parse_selections,
    parse_upgradable,
    parse_versions,
)
from dotpkg.core.errors import CommandError, PackageManagerError, StepFailedError
from dotpkg.core.models.settings import Settings


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestParseUpgradable:
    def test_sample_line(self):
        pkgs = parse_upgradable("pkgname/source 2.0.0 amd64 [upgradable from: 1.0.0]\n")
        assert len(pkgs) == 1
        pkg = pkgs[0]
        assert pkg.name == "pkgname"
        assert pkg.current_version == "1.0.0"
        assert pkg.latest_version == "2.0.0"
        assert pkg.outdated
        assert pkg.installed_by == "apt"

    def test_listing_header_and_malformed(self):
        text = (
            "Listing... Done\n"
            "vim/jammy-updates 2:8.2.3995-1ubuntu2.7 amd64 [upgradable from: 2:8.2.3995-1ubuntu2.3]\n"
            "broken/line 1.0\n"
            "\n"
        )
        pkgs = parse_upgradable(text)
        assert [p.name for p in pkgs] == ["vim"]
        assert pkgs[0].current_version == "2:8.2.3995-1ubuntu2.3"

    def test_line_without_current_version_skipped(self):
        assert parse_upgradable("foo/stable 2.0 amd64 [residual-config]\n") == []
        assert parse_upgradable("foo/stable 2.0 amd64 [upgradable from:\n") == []


class TestBatchInstalled:
    def test_versions_map(self):
        text = "zsh\t5.9-4\ngit\t1:2.39.2-1.1\nmalformed\n"
        assert parse_versions(text) == {"zsh": "5.9-4", "git": "1:2.39.2-1.1"}

    def test_selections_install_only(self):
        text = "zsh\t\t\t\tinstall\nold\t\t\t\tdeinstall\nlibc6:amd64\t\tinstall\n"
        assert parse_selections(text) == ["zsh", "libc6:amd64"]

    def test_join_uses_batch_versions(self):
        versions = {"zsh": "5.9-4", "libc6": "2.36-9", "tmux": "3.3a-3"}
        pkgs = join_installed(["zsh", "libc6:amd64", "tmux", "ghost"], versions)
        by_name = {p.name: p.current_version for p in pkgs}
        assert by_name == {
            "zsh": "5.9-4",
            "libc6:amd64": "2.36-9",
            "tmux": "3.3a-3",
            "ghost": "",
        }
        for pkg in pkgs:
            bare = pkg.name.split(":")[0]
            if bare in versions:
                assert pkg.current_version == versions[bare]


class TestParseSearch:
    def test_descriptions(self):
        text = (
            "Sorting... Done\n"
            "Full Text Search... Done\n"
            "ripgrep/stable 13.0.0-4+b2 amd64 [installed]\n"
            "  Recursively searches directories for a regex pattern\n"
            "\n"
            "ugrep/stable 3.11.0+dfsg-1 amd64\n"
            "  advanced search tool\n"
        )
        pkgs = parse_search(text)
        assert [p.name for p in pkgs] == ["ripgrep", "ugrep"]
        assert pkgs[0].current_version == "13.0.0-4+b2"
        assert pkgs[0].description == "Recursively searches directories for a regex pattern"
        assert pkgs[1].current_version == ""
        assert pkgs[1].description == "advanced search tool"


class TestAptManager:
    def test_needs_sudo(self, fake_which):
        with fake_which("apt"):
            apt = AptManager()
        assert apt.needs_sudo()
        assert apt.name == "apt"

    def test_install_with_sudo(self, fake_which, not_root):
        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.shell.command.subprocess.run", return_value=_completed()) as run:
            apt.install("zsh", "tmux")
            apt.uninstall("tmux")
        argvs = [c[0][0] for c in run.call_args_list]
        assert argvs == [
            ["sudo", "/usr/bin/apt", "install", "-y", "zsh", "tmux"],
            ["sudo", "/usr/bin/apt", "remove", "-y", "tmux"],
        ]

    def test_update_refresh_is_best_effort(self, fake_which, not_root):
        def fake_run(argv, **kwargs):
            if argv[-1] == "update":
                return _completed(returncode=100)
            return _completed()

        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.shell.command.subprocess.run", side_effect=fake_run) as run:
            apt.update("zsh")
        assert run.call_args[0][0] == ["sudo", "/usr/bin/apt", "install", "-y", "zsh"]

    def test_update_all_stops_after_failed_refresh(self, fake_which, not_root):
        with fake_which("apt"):
            apt = AptManager()
        with patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed(returncode=100, stderr="E: network down\n"),
        ) as run:
            with pytest.raises(StepFailedError) as exc:
                apt.update_all()
        assert exc.value.step == "apt update"
        assert run.call_count == 1

    def test_update_all_names_upgrade_step(self, fake_which, not_root):
        def fake_run(argv, **kwargs):
            return _completed(returncode=1 if "upgrade" in argv else 0)

        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.shell.command.subprocess.run", side_effect=fake_run):
            with pytest.raises(StepFailedError) as exc:
                apt.update_all()
        assert exc.value.step == "apt upgrade"

    def test_is_installed(self, fake_which):
        with fake_which("apt"):
            apt = AptManager()
        with patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed("install ok installed"),
        ) as run:
            assert apt.is_installed("zsh")
        assert run.call_args[0][0] == ["dpkg-query", "-W", "-f=${Status}", "zsh"]

        with patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed("deinstall ok config-files"),
        ):
            assert not apt.is_installed("zsh")

        with patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed(returncode=1),
        ):
            assert not apt.is_installed("ghost")

    def test_get_version(self, fake_which):
        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.shell.command.subprocess.run", return_value=_completed("5.9-4")):
            assert apt.get_version("zsh") == "5.9-4"
        with patch("dotpkg.adapters.shell.command.subprocess.run", return_value=_completed(returncode=1)):
            with pytest.raises(PackageManagerError, match="not installed"):
                apt.get_version("ghost")

    def test_check_outdated_refreshes_first(self, fake_which, not_root):
        def fake_run(argv, **kwargs):
            if argv[:2] == ["/usr/bin/apt", "list"]:
                return _completed("Listing...\nbat/stable 0.24.0 amd64 [upgradable from: 0.22.1]\n")
            return _completed()

        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.shell.command.subprocess.run", side_effect=fake_run) as run:
            pkgs = apt.check_outdated()
        argvs = [c[0][0] for c in run.call_args_list]
        assert argvs[0] == ["sudo", "/usr/bin/apt", "update"]
        assert argvs[1] == ["/usr/bin/apt", "list", "--upgradable"]
        assert pkgs[0].name == "bat"

    def test_check_outdated_without_refresh(self, fake_which):
        with fake_which("apt"):
            apt = AptManager(Settings(apt_refresh_before_check=False))
        with patch("dotpkg.adapters.shell.command.subprocess.run", return_value=_completed("")) as run:
            assert apt.check_outdated() == []
        assert run.call_count == 1

    def test_check_outdated_failure(self, fake_which):
        with fake_which("apt"):
            apt = AptManager(Settings(apt_refresh_before_check=False))
        with patch("dotpkg.adapters.shell.command.subprocess.run", return_value=_completed(returncode=1)):
            with pytest.raises(CommandError):
                apt.check_outdated()

    def test_list_installed_two_batch_calls(self, fake_which):
        def fake_run(argv, **kwargs):
            if argv[0] == "dpkg-query":
                return _completed("zsh\t5.9-4\nlibc6\t2.36-9\n")
            return _completed("zsh\t\tinstall\nlibc6:amd64\tinstall\nold\tdeinstall\n")

        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.shell.command.subprocess.run", side_effect=fake_run) as run:
            pkgs = apt.list_installed()
        assert run.call_count == 2
        assert {p.name: p.current_version for p in pkgs} == {"zsh": "5.9-4", "libc6:amd64": "2.36-9"}

    def test_update_all_streaming_steps(self, fake_which, not_root):
        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.managers.base.run_streaming_steps") as steps:
            apt.update_all_streaming()
        assert steps.call_args[0][0] == [
            ("apt update", ["sudo", "/usr/bin/apt", "update"]),
            ("apt upgrade", ["sudo", "/usr/bin/apt", "upgrade", "-y"]),
        ]

    def test_install_streaming(self, fake_which, not_root):
        with fake_which("apt"):
            apt = AptManager()
        with patch("dotpkg.adapters.managers.base.run_streaming") as rs:
            apt.install_streaming("zsh")
        assert rs.call_args[0] == ("sudo", "/usr/bin/apt", "install", "-y", "zsh")
