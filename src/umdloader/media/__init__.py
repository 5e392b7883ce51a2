"""Media inspection, metadata extraction and boot image resolution."""
