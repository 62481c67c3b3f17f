"""DevVault workspace core: tab registry, draft buffers and save orchestration."""

__version__ = "0.4.0"

__all__ = ["__version__"]
