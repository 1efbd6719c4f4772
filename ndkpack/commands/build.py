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

from ndkpack.utils.context.namespace import CliNameSpace
from ndkpack.utils.context.context import CliContext
from ndkpack.utils.context.command import CliCommand
from ndkpack.build_scripts import build_android
from ndkpack.build_scripts.build_config import ARCHIVERS, load_build_config
from ndkpack.build_scripts.build_errors import ConfigurationError


class Build(CliCommand):
    def description(self) -> str:
        return """Build native libraries for every configured Android ABI.

For each ABI the project is configured, built and installed with CMake and
the Android NDK toolchain. The first failure stops the whole run. When all
ABIs succeed the shared libraries are packed into an AAR.

OUTPUT:
    build-android-<abi>/          CMake working directory (recreated each run)
    android-libs/<abi>/lib/       Installed libraries
    build-aar/                    AAR staging directory
    llama-android.aar             Final package

EXAMPLES:
    # Build all configured ABIs and create the AAR
    ndkpack build

    # Build selected ABIs with 8 parallel jobs
    ndkpack build --arch arm64-v8a,x86_64 -j 8

    # Only build the libraries
    ndkpack build --no-package

    # Use a specific NDK instead of $ANDROID_NDK
    ndkpack build --ndk ~/Android/Sdk/ndk/26.1.10909125
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ndkpack build",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "--arch",
            type=str,
            default=None,
            help="ABIs to build (comma-separated, default: all configured ABIs)",
        )
        parser.add_argument(
            "-j", "--jobs",
            type=int,
            default=None,
            help="Number of parallel build jobs (default: CPU count)",
        )
        parser.add_argument(
            "--ndk",
            type=str,
            default=None,
            help="Android NDK path (default: value of the toolchain environment variable)",
        )
        parser.add_argument(
            "--config",
            type=str,
            default=None,
            help="Path of the NDKPACK.toml to use",
        )
        parser.add_argument(
            "--no-package",
            action="store_true",
            help="Skip the AAR packaging step",
        )
        parser.add_argument(
            "--archiver",
            type=str,
            choices=ARCHIVERS,
            default=None,
            help="Archive backend: zip tool or python zipfile (default: from config)",
        )
        module_name = os.path.splitext(os.path.basename(__file__))[0]
        args, unknown = parser.parse_known_args(
            self.input_argv(module_name, argv), namespace=CliNameSpace()
        )
        return args

    def exec(self, context: CliContext, args: CliNameSpace) -> int:
        print(f"Build configuration: {vars(args)}")
        try:
            config = load_build_config(context.project_dir, args.config)
            if args.arch:
                config = config.select([arch.strip() for arch in args.arch.split(",") if arch.strip()])
            if args.archiver:
                config = config._replace(archiver=args.archiver)
        except ConfigurationError as e:
            print(f"ERROR: {e}")
            return 1

        package = False if args.no_package else None
        return build_android.main(config, ndk_path=args.ndk, jobs=args.jobs, package=package)
