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
import argparse
from copier import run_copy

from ndkpack.utils.context.namespace import CliNameSpace
from ndkpack.utils.context.context import CliContext
from ndkpack.utils.context.command import CliCommand
from ndkpack.build_scripts.build_config import CONFIG_FILE_NAME

TEMPLATE_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.realpath(__file__))), "template")


def parse_data_items(items):
    """Turn KEY=VALUE strings into template data, converting booleans and integers"""
    data = {}
    for item in items or []:
        if "=" not in item:
            print(f"⚠️  Ignoring --data '{item}', expected KEY=VALUE")
            continue
        key, value = item.split("=", 1)
        if value.lower() == "true":
            value = True
        elif value.lower() == "false":
            value = False
        elif value.isdigit():
            value = int(value)
        data[key] = value
    return data


class Init(CliCommand):
    def description(self) -> str:
        return f"""
        Create a {CONFIG_FILE_NAME} in the current directory.

        The file lists the ABIs with their compiler flags, the CMake feature
        options and the AAR settings used by 'ndkpack build'.

        By default, the command runs in non-interactive mode using default values.
        Use --interact to enable interactive mode with prompts.

        Examples:
            ndkpack init
            ndkpack init --interact
            ndkpack init --data project_name=whisper --data min_sdk=24
            ndkpack init --data archiver=python --force
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ndkpack init",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "--data",
            action="append",
            help="Template data in KEY=VALUE format (can be used multiple times)",
        )
        parser.add_argument(
            "--interact",
            action="store_true",
            help="Enable interactive mode with prompts (default is non-interactive)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help=f"Overwrite an existing {CONFIG_FILE_NAME}",
        )
        module_name = os.path.splitext(os.path.basename(__file__))[0]
        args, unknown = parser.parse_known_args(
            self.input_argv(module_name, argv), namespace=CliNameSpace()
        )
        return args

    def exec(self, context: CliContext, args: CliNameSpace) -> int:
        project_dir = context.project_dir
        config_path = os.path.join(project_dir, CONFIG_FILE_NAME)

        if os.path.exists(config_path) and not args.force:
            print(f"ERROR: {config_path} already exists, use --force to overwrite it")
            return 1

        data = parse_data_items(args.data)

        print(f"Creating {CONFIG_FILE_NAME} in '{project_dir}'")
        run_copy(
            TEMPLATE_PATH,
            project_dir,
            data=data,
            defaults=not args.interact,
            overwrite=True,
            quiet=True,
        )

        print(f"\n✅ Created {config_path}")
        print("\nNext steps:")
        print("  # Review the ABIs and CMake options")
        print("  ndkpack check")
        print("  ndkpack build")
        return 0
