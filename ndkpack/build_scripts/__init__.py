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

"""Build, summary and packaging steps of the Android multi-ABI build."""

__all__ = [
    "build_android",
    "build_config",
    "build_errors",
    "build_utils",
    "package_aar",
]
