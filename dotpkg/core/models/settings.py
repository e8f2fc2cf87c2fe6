"""
Settings model — tunables for manager selection and command execution.

Loaded from YAML by :mod:`dotpkg.core.config.loader`. Every field has a
default so an absent config file is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

# Packages the dotfiles installer manages. Update checks can be scoped to
# this set so unrelated system packages don't flood the update view.
DOTFILES_PACKAGES: tuple[str, ...] = (
    # Core shell
    "zsh",
    "zsh-syntax-highlighting",
    "zsh-autosuggestions",
    "zsh-completions",
    # Terminal tools
    "tmux",
    "neovim",
    "fzf",
    "ripgrep",
    "fd",
    "bat",
    "eza",
    "zoxide",
    "yazi",
    "btop",
    "glow",
    # Git tools
    "git",
    "git-delta",
    "lazygit",
    "lazydocker",
    # Utilities
    "fastfetch",
    "tlrc",
    "ncdu",
    "duf",
    "dust",
    "fswatch",
)


class Settings(BaseModel):
    """Runtime settings for the package-manager layer."""

    sudo_command: list[str] = Field(default_factory=lambda: ["sudo"])
    aur_helpers: list[str] = Field(default_factory=lambda: ["paru"])
    apt_refresh_before_check: bool = True
    query_timeout: int = 120            # seconds, read-only queries
    mutate_timeout: int | None = None   # None = wait as long as it takes
    stream_buffer: int = 100            # queued output lines per stream
    tracked_packages: list[str] = Field(
        default_factory=lambda: list(DOTFILES_PACKAGES),
    )

    @field_validator("sudo_command")
    @classmethod
    def _sudo_not_empty(cls, v: list[str]) -> list[str]:
        if not v or not v[0]:
            raise ValueError("sudo_command must name an executable")
        return v

    @field_validator("query_timeout", "stream_buffer")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v
