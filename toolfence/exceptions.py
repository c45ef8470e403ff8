# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

class ConfigurationError(Exception):
    """Raised when configuration or a custom fence pattern is invalid."""
    def __init__(self, message: str, source: str = "<dict>"):
        self.source = source
        super().__init__(message)
