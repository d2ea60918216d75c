"""Local agent for Terra workspaces: context, credentials and resource resolution."""

__version__ = "0.4.0"

__all__ = ["__version__"]
