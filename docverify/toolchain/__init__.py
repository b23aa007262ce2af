"""Toolchain adapters used to execute documentation snippets."""

from .runner import ToolchainLaunchError, ToolchainRequest, ToolchainRunner

__all__ = ["ToolchainLaunchError", "ToolchainRequest", "ToolchainRunner"]
