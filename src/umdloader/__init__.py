"""umdloader - UMD media inspection, boot resolution and recent history."""

__version__ = "0.1.0"
