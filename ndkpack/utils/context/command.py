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

import sys

from ndkpack.utils.context.context import CliContext
from ndkpack.utils.context.namespace import CliNameSpace


# Base class of every subcommand
class CliCommand:
    def description(self) -> str:
        raise NotImplementedError

    def cli(self, argv=None) -> CliNameSpace:
        raise NotImplementedError

    def exec(self, context: CliContext, args: CliNameSpace) -> int:
        raise NotImplementedError

    def input_argv(self, module_name, argv=None) -> list:
        if argv is None:
            argv = sys.argv[1:]
        # drop the subcommand name itself when called from the root cli
        if argv and argv[0] == module_name:
            return list(argv[1:])
        return list(argv)
