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
import re
import argparse

from ndkpack.utils.context.namespace import CliNameSpace
from ndkpack.utils.context.context import CliContext
from ndkpack.utils.context.command import CliCommand
from ndkpack.utils.cmd.cmd_util import exec_command, find_tool
from ndkpack.build_scripts.build_config import ARCHIVER_ZIP, load_build_config
from ndkpack.build_scripts.build_errors import ConfigurationError
from ndkpack.build_scripts.build_utils import TOOLCHAIN_FILE_RELATIVE_PATH, get_ndk_revision

MIN_CMAKE_VERSION = (3, 14)


class Check(CliCommand):
    def description(self) -> str:
        return """
        This is a subcommand to check the Android build environment.

        Required: the NDK toolchain path and cmake.
        Optional: tree and find (output listing), zip (AAR packaging).

        Examples:
            ndkpack check
            ndkpack check --verbose
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ndkpack check",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "--ndk",
            type=str,
            default=None,
            help="Android NDK path to check instead of the environment variable",
        )
        parser.add_argument(
            "--config",
            type=str,
            default=None,
            help="Path of the NDKPACK.toml to use",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Show detailed information",
        )
        module_name = os.path.splitext(os.path.basename(__file__))[0]
        args, unknown = parser.parse_known_args(
            self.input_argv(module_name, argv), namespace=CliNameSpace()
        )
        return args

    def exec(self, context: CliContext, args: CliNameSpace) -> int:
        print("🔍 Checking Android build environment...\n")
        try:
            config = load_build_config(context.project_dir, args.config)
        except ConfigurationError as e:
            print(f"ERROR: {e}")
            return 1

        checker = EnvironmentChecker(config, verbose=args.verbose)
        checker.check_all(ndk_path=args.ndk)
        checker.print_summary()
        return 1 if checker.errors else 0


class EnvironmentChecker:
    def __init__(self, config, verbose=False):
        self.config = config
        self.verbose = verbose
        self.warnings = []
        self.errors = []

    def print_ok(self, msg):
        print(f"  ✅ {msg}")

    def print_error(self, msg):
        print(f"  ❌ {msg}")
        self.errors.append(msg)

    def print_warning(self, msg):
        print(f"  ⚠️  {msg}")
        self.warnings.append(msg)

    def print_info(self, msg):
        print(f"  ℹ️  {msg}")

    def print_section(self, title):
        print(f"\n{'='*60}")
        print(f"  {title}")
        print(f"{'='*60}")

    def check_all(self, ndk_path=None):
        self.check_ndk(ndk_path)
        self.check_cmake()
        self.check_optional_tools()
        if self.verbose:
            self.print_section("Targets")
            for target in self.config.targets:
                self.print_info(f"{target.abi}: {target.flags_string()}")

    def check_ndk(self, ndk_path=None):
        """Check the toolchain root the same way the build validates it"""
        self.print_section("Android NDK")
        env_name = self.config.toolchain_env
        source = "--ndk" if ndk_path else env_name
        ndk_path = ndk_path or os.environ.get(env_name, "")

        if not ndk_path:
            self.print_error(f"{env_name}: Not set")
            return False
        ndk_path = os.path.expanduser(ndk_path)
        if not os.path.isdir(ndk_path):
            self.print_error(f"{source}: Set to '{ndk_path}' but directory doesn't exist")
            return False
        self.print_ok(f"{source}: {ndk_path}")

        revision = get_ndk_revision(ndk_path)
        if revision:
            self.print_ok(f"NDK revision: {revision}")
        else:
            self.print_warning("NDK revision unknown (source.properties missing or unreadable)")

        if not os.path.isfile(os.path.join(ndk_path, TOOLCHAIN_FILE_RELATIVE_PATH)):
            self.print_warning(f"CMake toolchain file not found: {TOOLCHAIN_FILE_RELATIVE_PATH}")
        return True

    def check_cmake(self):
        self.print_section("CMake")
        if not find_tool("cmake"):
            self.print_error("CMake: Not found")
            return False

        err_code, output = exec_command(["cmake", "--version"], echo=False)
        version = output.split("\n")[0].strip() if err_code == 0 else ""
        self.print_ok(f"CMake: Found {version}")

        match = re.search(r"(\d+)\.(\d+)\.(\d+)", version)
        if match:
            major, minor, patch = map(int, match.groups())
            if (major, minor) < MIN_CMAKE_VERSION:
                self.print_warning(
                    f"CMake version {major}.{minor}.{patch} has no 'cmake --install'. "
                    f"Required: {MIN_CMAKE_VERSION[0]}.{MIN_CMAKE_VERSION[1]}+"
                )
        return True

    def check_optional_tools(self):
        self.print_section("Optional tools")
        for tool, purpose in (
            ("tree", "output listing"),
            ("find", "output listing fallback"),
            ("zip", "AAR packaging"),
        ):
            if find_tool(tool):
                self.print_ok(f"{tool}: Found ({purpose})")
            elif tool == "zip" and self.config.archiver == ARCHIVER_ZIP:
                self.print_warning(
                    f"{tool}: Not found, AAR packaging will be skipped "
                    "(set archiver = \"python\" in NDKPACK.toml)"
                )
            else:
                self.print_info(f"{tool}: Not found ({purpose} falls back)")

    def print_summary(self):
        self.print_section("Summary")
        if not self.errors and not self.warnings:
            print("  ✅ Environment is ready")
            return
        for msg in self.errors:
            print(f"  ❌ {msg}")
        for msg in self.warnings:
            print(f"  ⚠️  {msg}")
        print(f"\n  {len(self.errors)} error(s), {len(self.warnings)} warning(s)")
