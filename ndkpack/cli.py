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

import os
import sys
import importlib
import argparse

from ndkpack import __version__
from ndkpack.utils.context.namespace import CliNameSpace
from ndkpack.utils.context.context import CliContext
from ndkpack.utils.context.command import CliCommand

SCRIPT_PATH = os.path.split(os.path.realpath(__file__))[0]


# Root Class for Command Line Interface
class Cli(CliCommand):
    def description(self) -> str:
        return f"""ndkpack {__version__} - Multi-ABI Android native build tool

Builds a CMake project for every configured Android ABI with the NDK
toolchain and packs the shared libraries into an AAR.

USAGE:
    ndkpack <command> [options]

COMMANDS:
    init        Create an NDKPACK.toml in the current directory
    check       Check the NDK, CMake and optional tools
    build       Build all ABIs and package the AAR
    clean       Remove build directories, outputs and the AAR

EXAMPLES:
    ndkpack init                         # Write the default configuration
    ndkpack build                        # Build every ABI and the AAR
    ndkpack build --arch arm64-v8a       # Build one ABI
    ndkpack clean --dry-run              # Preview what clean removes

For more information on a specific command:
    ndkpack <command> --help
        """

    def get_command_list(self) -> list:
        arr = []
        for command in os.listdir(os.path.join(SCRIPT_PATH, "commands")):
            if not command.startswith("_") and command.endswith(".py"):
                arr.append(os.path.splitext(os.path.basename(command))[0])
        return sorted(arr)

    def get_parser(self, add_help=True) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="ndkpack",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
            add_help=add_help,
        )
        parser.add_argument(
            "subcommand",
            metavar=f"{self.get_command_list()}",
            type=str,
            nargs="?",
            choices=self.get_command_list(),
        )
        return parser

    def cli(self, argv=None) -> CliNameSpace:
        if argv is None:
            argv = sys.argv[1:]
        # Only answer --help for the root command, not for `ndkpack build --help`
        if len(argv) == 1 and argv[0] in ["--help", "-h"]:
            self.get_parser().print_help()
            sys.exit(0)
        if len(argv) == 1 and argv[0] == "--version":
            print(f"ndkpack {__version__}")
            sys.exit(0)

        # parse only known args - this will NOT consume --help if present
        args, unknown = self.get_parser(add_help=False).parse_known_args(
            argv, namespace=CliNameSpace()
        )
        args.argv = list(argv)
        return args

    def get_subcommand(self, name) -> CliCommand:
        module = importlib.import_module(f"ndkpack.commands.{name}")
        klass = getattr(module, name.capitalize())
        return klass()

    def exec(self, context: CliContext, args: CliNameSpace) -> int:
        if not args.subcommand:
            print("ERROR: No command specified\n")
            self.get_parser().print_help()
            return 1

        sub_cmd = self.get_subcommand(args.subcommand)
        return sub_cmd.exec(context, sub_cmd.cli(args.argv))


def main(argv=None):
    cmd = Cli()
    sys.exit(cmd.exec(CliContext(), cmd.cli(argv)))


if __name__ == "__main__":
    main()
