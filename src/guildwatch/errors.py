#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Exceptions
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""Exception hierarchy shared across GuildWatch."""


class GuildWatchError(Exception):
    """Base exception for GuildWatch errors."""

    pass


class StoreError(GuildWatchError):
    """Raised when the configuration store cannot be read or written."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation

