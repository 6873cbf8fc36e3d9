"""Workflow builder: author, validate and execute agent workflows on a canvas."""

__version__ = "1.0.0"
