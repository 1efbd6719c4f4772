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
import glob
import argparse

from ndkpack.utils.context.namespace import CliNameSpace
from ndkpack.utils.context.context import CliContext
from ndkpack.utils.context.command import CliCommand
from ndkpack.build_scripts.build_config import load_build_config
from ndkpack.build_scripts.build_errors import ConfigurationError
from ndkpack.build_scripts.build_utils import remove_path


class Clean(CliCommand):
    def description(self) -> str:
        return """
        This is a subcommand to clean build artifacts.

        Cleans the following paths:
        - build-android-*/        # CMake working directories
        - android-libs/           # Installed libraries
        - build-aar/              # AAR staging directory
        - llama-android.aar       # Packaged AAR

        Examples:
            ndkpack clean              # Clean all build artifacts
            ndkpack clean --dry-run    # Preview what will be cleaned
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="ndkpack clean",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be cleaned without actually deleting",
        )
        parser.add_argument(
            "--config",
            type=str,
            default=None,
            help="Path of the NDKPACK.toml to use",
        )
        module_name = os.path.splitext(os.path.basename(__file__))[0]
        args, unknown = parser.parse_known_args(
            self.input_argv(module_name, argv), namespace=CliNameSpace()
        )
        return args

    def exec(self, context: CliContext, args: CliNameSpace) -> int:
        print("Cleaning build artifacts...\n")
        try:
            config = load_build_config(context.project_dir, args.config)
        except ConfigurationError as e:
            print(f"ERROR: {e}")
            return 1

        cleaner = ProjectCleaner(config, dry_run=args.dry_run)
        cleaner.clean_all()
        cleaner.print_summary()
        return 1 if cleaner.failed_paths else 0


class ProjectCleaner:
    def __init__(self, config, dry_run=False):
        self.config = config
        self.dry_run = dry_run
        self.cleaned_paths = []
        self.cleaned_size = 0
        self.failed_paths = []

    def get_size(self, path):
        """Get total size of a file or directory in bytes"""
        if os.path.isfile(path):
            return os.path.getsize(path)
        total_size = 0
        for dirpath, dirnames, filenames in os.walk(path):
            for filename in filenames:
                filepath = os.path.join(dirpath, filename)
                if not os.path.islink(filepath):
                    total_size += os.path.getsize(filepath)
        return total_size

    def format_size(self, size_bytes):
        """Format bytes to human-readable size"""
        for unit in ['B', 'KB', 'MB', 'GB']:
            if size_bytes < 1024.0:
                return f"{size_bytes:.2f} {unit}"
            size_bytes /= 1024.0
        return f"{size_bytes:.2f} TB"

    def get_clean_paths(self):
        config = self.config
        paths = sorted(glob.glob(config.path(f"{config.build_dir_prefix}*")))
        paths += [
            config.get_output_root(),
            config.get_staging_dir(),
            config.get_archive_path(),
        ]
        return [path for path in paths if os.path.lexists(path)]

    def remove(self, path):
        display_name = os.path.relpath(path, self.config.project_dir)
        size = self.get_size(path)

        if self.dry_run:
            print(f"  [DRY RUN] Would remove: {display_name} ({self.format_size(size)})")
            return True

        try:
            remove_path(path)
        except OSError as e:
            self.failed_paths.append((display_name, str(e)))
            print(f"  ❌ Failed to remove {display_name}: {e}")
            return False
        self.cleaned_paths.append(display_name)
        self.cleaned_size += size
        print(f"  ✅ Removed: {display_name} ({self.format_size(size)})")
        return True

    def clean_all(self):
        paths = self.get_clean_paths()
        if not paths:
            print("  ℹ️  Nothing to clean")
            return
        for path in paths:
            self.remove(path)

    def print_summary(self):
        print("\n" + "="*60)
        if self.dry_run:
            print("  Dry run, nothing was removed")
        else:
            print(f"  Removed {len(self.cleaned_paths)} path(s), freed {self.format_size(self.cleaned_size)}")
        for name, error in self.failed_paths:
            print(f"  ❌ {name}: {error}")
        print("="*60)
