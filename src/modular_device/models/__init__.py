"""Data models for requests, command descriptors, and error records."""

from .messages import CommandDescriptor, ErrorRecord, Request
