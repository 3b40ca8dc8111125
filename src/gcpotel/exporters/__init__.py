"""Exporter modules for the Google Cloud observability backends.

Each exporter is isolated in its own subpackage to keep vendor-specific
wire formats at the edges of the SDK.
"""
