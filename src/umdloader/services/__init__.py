"""Runtime integrations.

Wrappers for the emulated-machine runtime that receives loaded content.
Keeping them behind a small interface allows easy mocking during testing.
"""
