"""
Tests for the Homebrew backend — parsers and command vectors.
"""

from __future__ import annotations

import json
import subprocess
from unittest.mock import patch

import pytest

from dotpkg.adapters.managers.brew import (
    BrewManager,
    parse_info_version,
    parse_outdated,
    parse_search,
    parse_version_listing,
)
from dotpkg.core.errors import CommandError, PackageManagerError


def _completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


OUTDATED_JSON = json.dumps({
    "formulae": [
        {"name": "ripgrep", "installed_versions": ["13.0.0"], "current_version": "14.1.0"},
        {"name": "fzf", "installed_versions": ["0.44.1"], "current_version": "0.44.1"},
        {"installed_versions": ["1.0"], "current_version": "2.0"},
    ],
    "casks": [
        {"name": "wezterm", "installed_versions": ["20230712"], "current_version": "20240203"},
        {"name": "iterm2", "installed_version": "3.4", "current_version": "3.5"},
    ],
})


class TestParseOutdated:
    def test_formulae_and_casks(self):
        pkgs = parse_outdated(OUTDATED_JSON)
        by_name = {p.name: p for p in pkgs}
        assert set(by_name) == {"ripgrep", "wezterm", "iterm2"}
        assert by_name["ripgrep"].current_version == "13.0.0"
        assert by_name["ripgrep"].latest_version == "14.1.0"
        assert by_name["ripgrep"].installed_by == "brew"
        assert by_name["wezterm"].installed_by == "brew-cask"
        assert by_name["iterm2"].current_version == "3.4"
        assert all(p.outdated for p in pkgs)

    def test_empty(self):
        assert parse_outdated("") == []
        assert parse_outdated('{"formulae": [], "casks": []}') == []

    def test_invalid_json(self):
        with pytest.raises(PackageManagerError, match="invalid JSON"):
            parse_outdated("Error: not json")

    def test_non_object_entries_skipped(self):
        assert parse_outdated('{"formulae": ["oops", 3], "casks": [null]}') == []
        assert parse_outdated('{"formulae": {"name": "x"}, "casks": "y"}') == []

    def test_valid_entries_kept_among_garbage(self):
        text = json.dumps({
            "formulae": [
                "oops",
                {"name": "fd", "installed_versions": "8.7.0", "current_version": "9.0.0"},
                {"name": "bat", "installed_versions": ["0.23.0"], "current_version": "0.24.0"},
            ],
            "casks": [42],
        })
        pkgs = parse_outdated(text)
        assert [(p.name, p.current_version) for p in pkgs] == [("fd", ""), ("bat", "0.23.0")]


class TestParseInfoVersion:
    def test_formula(self):
        text = json.dumps({"formulae": [{"installed": [{"version": "3.9.1"}]}], "casks": []})
        assert parse_info_version(text, "tmux") == "3.9.1"

    def test_cask(self):
        text = json.dumps({"formulae": [], "casks": [{"installed": "20240203"}]})
        assert parse_info_version(text, "wezterm") == "20240203"

    def test_not_installed(self):
        text = json.dumps({"formulae": [{"installed": []}], "casks": []})
        with pytest.raises(PackageManagerError, match="not installed"):
            parse_info_version(text, "tmux")

    def test_malformed_entries(self):
        text = json.dumps({"formulae": ["tmux", {"installed": ["3.4"]}], "casks": [None]})
        with pytest.raises(PackageManagerError, match="not installed"):
            parse_info_version(text, "tmux")


class TestParseListing:
    def test_versions(self):
        text = "bat 0.24.0\ngit 2.43.0 2.42.0\nbroken\n"
        assert parse_version_listing(text) == {"bat": "0.24.0", "git": "2.43.0"}


class TestParseSearch:
    def test_headers_and_columns(self):
        text = "==> Formulae\nneovim  neovim-qt\n\n==> Casks\nneovide\n"
        pkgs = parse_search(text)
        assert [(p.name, p.installed_by) for p in pkgs] == [
            ("neovim", "brew"),
            ("neovim-qt", "brew"),
            ("neovide", "brew-cask"),
        ]


class TestBrewManager:
    def test_unavailable(self, fake_which):
        with fake_which():
            brew = BrewManager()
        assert not brew.is_available()
        assert brew.name == "brew"
        assert not brew.is_installed("git")
        with pytest.raises(PackageManagerError, match="not installed"):
            brew.check_outdated()

    def test_never_sudo(self, fake_which, not_root):
        with fake_which("brew"):
            brew = BrewManager()
        assert not brew.needs_sudo()
        with patch("dotpkg.adapters.shell.command.subprocess.run", return_value=_completed()) as run:
            brew.install("bat", "fzf")
        assert run.call_args[0][0] == ["/usr/bin/brew", "install", "bat", "fzf"]

    def test_empty_install_is_noop(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        with patch("dotpkg.adapters.shell.command.subprocess.run") as run:
            brew.install()
            brew.update()
            brew.uninstall()
        run.assert_not_called()

    def test_check_outdated(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        with patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed(OUTDATED_JSON),
        ) as run:
            pkgs = brew.check_outdated()
        assert run.call_args[0][0] == ["/usr/bin/brew", "outdated", "--json=v2"]
        assert len(pkgs) == 3

    def test_outdated_failure_propagates(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        with patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed(returncode=1),
        ):
            with pytest.raises(CommandError):
                brew.check_outdated()

    def test_search_no_match(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        with patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed("", returncode=1),
        ):
            assert brew.search("zzzz") == []

    def test_list_installed_linux(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        with patch("dotpkg.adapters.managers.brew.sys.platform", "linux"), patch(
            "dotpkg.adapters.shell.command.subprocess.run",
            return_value=_completed("bat 0.24.0\nfzf 0.44.1\n"),
        ) as run:
            pkgs = brew.list_installed()
        assert run.call_count == 1
        assert {p.name: p.current_version for p in pkgs} == {"bat": "0.24.0", "fzf": "0.44.1"}

    def test_list_installed_macos_includes_casks(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()

        def fake_run(argv, **kwargs):
            if "--cask" in argv:
                return _completed("wezterm 20240203\nbat 0.24.0\n")
            return _completed("bat 0.24.0\n")

        with patch("dotpkg.adapters.managers.brew.sys.platform", "darwin"), patch(
            "dotpkg.adapters.shell.command.subprocess.run", side_effect=fake_run,
        ):
            pkgs = brew.list_installed()
        assert [(p.name, p.installed_by) for p in pkgs] == [
            ("bat", "brew"),
            ("wezterm", "brew-cask"),
        ]

    def test_get_version(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        info = json.dumps({"formulae": [{"installed": [{"version": "0.24.0"}]}]})
        with patch("dotpkg.adapters.shell.command.subprocess.run", return_value=_completed(info)):
            assert brew.get_version("bat") == "0.24.0"

    def test_streaming_needs_packages(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        with pytest.raises(PackageManagerError, match="no packages"):
            brew.install_streaming()

    def test_streaming_argv(self, fake_which):
        with fake_which("brew"):
            brew = BrewManager()
        with patch("dotpkg.adapters.managers.base.run_streaming") as rs:
            brew.update_streaming("bat")
            brew.update_all_streaming()
        assert rs.call_args_list[0][0] == ("/usr/bin/brew", "upgrade", "bat")
        assert rs.call_args_list[1][0] == ("/usr/bin/brew", "upgrade")
