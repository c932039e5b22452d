# birdsync:errors.py

# MIT License
#
# Copyright (c) 2025 Jonas Waldeck
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND.

from __future__ import annotations

from typing import Optional


class SyncError(RuntimeError):
    """Base class for errors that abort a run."""


class ConfigError(SyncError):
    pass


class SourceFileError(SyncError):
    """The eBird export is missing, empty or has no header."""


class MalformedRecordError(SyncError):
    def __init__(self, line: int, message: str) -> None:
        super().__init__(f"line {line}: {message}")
        self.line = line


class RemoteError(SyncError):
    def __init__(self, operation: str, status: Optional[int], detail: str = "") -> None:
        msg = f"{operation} failed"
        if status is not None:
            msg += f": HTTP {status}"
        if detail:
            msg += f" – {detail[:500]}"
        super().__init__(msg)
        self.operation = operation
        self.status = status
