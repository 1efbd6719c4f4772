#!/usr/bin/env python3
# -- coding: utf-8 --
#
# build_android.py
# ndkpack
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
Android native library build across multiple ABIs.

For every configured target this runs the three CMake phases with the NDK
toolchain:
- configure: generate build state in build-android-<abi>/
- build: compile with a job count bound to the CPU count
- install: copy outputs into <output_root>/<abi>/

The run is fail-fast. The first phase that returns non-zero aborts the
remaining targets and skips packaging. When every target installs, the
outputs are summarized and packed into an AAR.

Usage:
    ndkpack build [--arch arm64-v8a,x86_64] [-j N] [--no-package]
"""

import os
import time
from typing import List

from ndkpack.build_scripts.build_config import BuildConfig, Target
from ndkpack.build_scripts.build_errors import ConfigurationError, PhaseError
from ndkpack.build_scripts.build_utils import (
    BuildEnvironment,
    check_library_architecture,
    clean_build_outputs,
    get_cpu_count,
    get_shared_libraries,
    print_directory_listing,
    validate_environment,
)
from ndkpack.build_scripts.package_aar import package_aar
from ndkpack.utils.cmd.cmd_util import exec_command, format_command

PHASE_CONFIGURE = "configure"
PHASE_BUILD = "build"
PHASE_INSTALL = "install"
PHASES = (PHASE_CONFIGURE, PHASE_BUILD, PHASE_INSTALL)

BANNER = "=" * 42


class PhaseResult:
    """Outcome of one phase of one target"""

    def __init__(self, target: str, phase: str, command, exit_code: int, log_path: str = None):
        self.target = target
        self.phase = phase
        self.command = command
        self.exit_code = exit_code
        self.log_path = log_path

    def is_success(self):
        return self.exit_code == 0

    def __repr__(self):
        return (
            f"PhaseResult(target={self.target}, phase={self.phase}, "
            f"exit_code={self.exit_code}, log_path={self.log_path})"
        )


class BuildReport:
    """What happened to each requested target during one run"""

    def __init__(self, requested: List[str]):
        self.requested = list(requested)
        self.results = {}
        self.success_targets = []
        self.error = None
        # set when the loop stopped on something other than a failing phase
        self.aborted_by = None
        self.archive_path = None

    @property
    def failed_target(self):
        if self.error:
            return self.error.target
        if self.aborted_by is not None and len(self.success_targets) < len(self.requested):
            return self.requested[len(self.success_targets)]
        return None

    def is_success(self):
        return (
            self.error is None
            and self.aborted_by is None
            and self.success_targets == self.requested
        )


def get_configure_cmd(config: BuildConfig, env: BuildEnvironment, target: Target) -> list:
    cmd = ["cmake", "-S", config.get_source_path(), "-B", config.get_build_dir(target)]
    if config.generator:
        cmd += ["-G", config.generator]
    cmd += [
        f"-DCMAKE_TOOLCHAIN_FILE={env.toolchain_file}",
        f"-DANDROID_PLATFORM=android-{config.min_sdk_version}",
    ]
    cmd += [f"-D{key}={value}" for key, value in config.cmake_options]
    cmd += [
        f"-DCMAKE_BUILD_TYPE={config.build_type}",
        f"-DANDROID_ABI={target.abi}",
        f"-DCMAKE_C_FLAGS={target.flags_string()}",
        f"-DCMAKE_CXX_FLAGS={target.flags_string()}",
    ]
    return cmd


def get_build_cmd(config: BuildConfig, target: Target, jobs: int) -> list:
    return [
        "cmake", "--build", config.get_build_dir(target),
        "--config", config.build_type,
        f"-j{jobs}",
    ]


def get_install_cmd(config: BuildConfig, target: Target) -> list:
    return [
        "cmake", "--install", config.get_build_dir(target),
        "--prefix", config.get_install_dir(target),
        "--config", config.build_type,
    ]


def get_phase_commands(config, env, target, jobs):
    return [
        (PHASE_CONFIGURE, get_configure_cmd(config, env, target)),
        (PHASE_BUILD, get_build_cmd(config, target, jobs)),
        (PHASE_INSTALL, get_install_cmd(config, target)),
    ]


def get_phase_log_path(config: BuildConfig, target: Target, phase: str) -> str:
    return os.path.join(config.get_build_dir(target), f"ndkpack-{phase}.log")


def run_phase(target: str, phase: str, command, cwd=None, log_path=None) -> PhaseResult:
    """
    Run one phase and return its result.

    Raises:
        PhaseError: If the command exits with a non-zero status
    """
    print(f"build cmd: [{format_command(command)}]")
    err_code, _ = exec_command(command, cwd=cwd, log_path=log_path)
    result = PhaseResult(target, phase, command, err_code, log_path)
    if not result.is_success():
        raise PhaseError(target, phase, err_code, log_path)
    return result


def build_target(config: BuildConfig, env: BuildEnvironment, target: Target, jobs: int) -> List[PhaseResult]:
    """
    Configure, build and install a single target.

    Each phase only starts when the previous one succeeded.

    Returns:
        list: PhaseResult of each phase, in order

    Raises:
        PhaseError: On the first failing phase
    """
    print("")
    print(BANNER)
    print(f"Building for ABI: {target.abi}")
    print(BANNER)
    before_time = time.time()

    results = []
    for phase, command in get_phase_commands(config, env, target, jobs):
        print(f"{phase.capitalize()}...")
        results.append(
            run_phase(
                target.abi,
                phase,
                command,
                cwd=config.project_dir,
                log_path=get_phase_log_path(config, target, phase),
            )
        )

    print(f"✓ Completed build for {target.abi}")
    print(f"use time: {int(time.time() - before_time)}")
    return results


def print_build_summary(config: BuildConfig, report: BuildReport):
    print("")
    print(BANNER)
    print("Build Summary")
    print(BANNER)
    print(f"Build All:{report.requested}")
    print(f"Build Success:{report.success_targets}")
    failed = [report.failed_target] if report.failed_target else []
    print(f"Build Failed:{failed}")
    if not report.is_success():
        skipped = report.requested[len(report.success_targets) + 1:]
        if skipped:
            print(f"Build Skipped:{skipped}")
        if report.error:
            print(f"Failed phase: {report.error.phase} (exit code {report.error.exit_code})")
            if report.error.log_path:
                print(f"Log: {report.error.log_path}")
        elif report.aborted_by is not None:
            print(f"Build aborted: {type(report.aborted_by).__name__}: {report.aborted_by}")
        return

    output_root = config.get_output_root()
    print("All ABIs built successfully!")
    print(f"Libraries are in: {output_root}{os.sep}")
    print("")
    print("Directory structure:")
    print_directory_listing(output_root)

    print("")
    print("Shared libraries:")
    for target in config.targets:
        libs = get_shared_libraries(os.path.join(config.get_install_dir(target), "lib"))
        if not libs:
            print(f"  WARNING: No shared libraries found for {target.abi}")
            continue
        for lib in libs:
            check_library_architecture(lib, target.abi)


def run_build(config: BuildConfig, ndk_path=None, jobs=None, package=None) -> BuildReport:
    """
    Build every configured target, then package them.

    Args:
        config: Build configuration
        ndk_path: Toolchain root overriding the environment variable
        jobs: Parallel build jobs (default: CPU count, 4 if unknown)
        package: Create the AAR (default: config.package_enabled)

    Returns:
        BuildReport: Results of a fully successful run

    Raises:
        ConfigurationError: Before any directory is touched or command run
        PhaseError: On the first failing phase; later targets are not built
        OSError: If a working directory or log file cannot be written
    """
    env = validate_environment(config, ndk_path)

    if jobs is None or jobs <= 0:
        jobs = get_cpu_count()
    if package is None:
        package = config.package_enabled

    print(f"main archs:{config.abis}, jobs:{jobs}")

    print("Cleaning previous builds...")
    for path in clean_build_outputs(config):
        print(f"  removed {path}")

    report = BuildReport(config.abis)
    try:
        for target in config.targets:
            report.results[target.abi] = build_target(config, env, target, jobs)
            report.success_targets.append(target.abi)
    except PhaseError as e:
        report.error = e
        raise
    except BaseException as e:
        report.aborted_by = e
        raise
    finally:
        print_build_summary(config, report)

    if package:
        report.archive_path = package_aar(config)
    return report


def main(config: BuildConfig, ndk_path=None, jobs=None, package=None) -> int:
    """
    Run the build and turn fatal errors into an exit code.

    Returns:
        int: 0 on success (packaging problems are only warnings), 1 otherwise
    """
    try:
        run_build(config, ndk_path=ndk_path, jobs=jobs, package=package)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 1
    except PhaseError as e:
        print("!!!!!!!!!!!!!!!!!!build fail!!!!!!!!!!!!!!!!!!!!")
        print(f"ERROR: {e}. Stopping immediately.")
        return 1
    except OSError as e:
        print("!!!!!!!!!!!!!!!!!!build fail!!!!!!!!!!!!!!!!!!!!")
        print(f"ERROR: {e}")
        return 1

    print("")
    print(BANNER)
    print("Build completed successfully!")
    print(BANNER)
    return 0
