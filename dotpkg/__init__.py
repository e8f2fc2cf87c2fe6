"""dotpkg — package-manager abstraction and streaming command runner for dotfiles."""

__version__ = "0.1.0"
