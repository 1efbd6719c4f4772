#
# Copyright 2024 zhlinh and ndkpack Project Authors. All rights reserved.
# Use of this source code is governed by a MIT-style
# license that can be found at
#
# https://opensource.org/license/MIT
#
# The above copyright notice and this permission
# notice shall be included in all copies or
# substantial portions of the Software.

"""
Errors raised while building and packaging.

ConfigurationError and PhaseError are fatal and end the run with a non-zero
exit code. OptionalToolMissing is recovered where it is raised and only ever
surfaces as a warning.
"""


class NdkpackError(Exception):
    """Base class for all ndkpack errors"""
    pass


class ConfigurationError(NdkpackError):
    """Missing or invalid toolchain path or build configuration"""
    pass


class PhaseError(NdkpackError):
    """A configure/build/install subprocess returned a non-zero status"""

    def __init__(self, target: str, phase: str, exit_code: int, log_path: str = None):
        self.target = target
        self.phase = phase
        self.exit_code = exit_code
        self.log_path = log_path
        message = f"{phase} failed for {target} (exit code {exit_code})"
        if log_path:
            message += f", see {log_path}"
        super().__init__(message)


class OptionalToolMissing(NdkpackError):
    """An optional helper tool (tree, find, zip) is not installed"""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"optional tool not found: {tool}")
