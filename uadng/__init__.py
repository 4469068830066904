"""Debloat Android devices over ADB: debloat lists, package state commands, backups and settings."""

__version__ = "1.1.2"