#!/usr/bin/env python3
# -- coding: utf-8 --
#
# build_utils.py
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
Build utility functions shared by the Android build and packaging steps.

This module provides:
- Toolchain (NDK) environment validation
- CPU count detection for parallel builds
- Cleaning of working and output directories
- Capability detection for optional tools (tree, find, zip)
- Output directory listing with graceful fallbacks
- ELF architecture inspection of built shared libraries
"""

import glob
import multiprocessing
import os
import shutil
import struct

from ndkpack.build_scripts.build_errors import ConfigurationError
from ndkpack.utils.cmd.cmd_util import exec_command, find_tool

DEFAULT_JOBS = 4

TOOLCHAIN_FILE_RELATIVE_PATH = os.path.join("build", "cmake", "android.toolchain.cmake")

SHARED_LIBRARY_PATTERN = "*.so"

# ELF e_machine values
ELF_MACHINE_MAP = {
    0x03: "x86",
    0x3E: "x86_64",
    0x28: "arm",
    0xB7: "aarch64",
}

# ELF machine expected in the libraries of each ABI
ABI_ELF_MACHINE = {
    "arm64-v8a": "aarch64",
    "armeabi-v7a": "arm",
    "x86_64": "x86_64",
    "x86": "x86",
}


class BuildEnvironment:
    """Validated toolchain root and the paths derived from it"""

    def __init__(self, ndk_path: str, revision: str = None):
        self.ndk_path = ndk_path
        self.revision = revision

    @property
    def toolchain_file(self) -> str:
        return os.path.join(self.ndk_path, TOOLCHAIN_FILE_RELATIVE_PATH)

    def __repr__(self):
        return f"BuildEnvironment(ndk_path={self.ndk_path}, revision={self.revision})"


def get_ndk_revision(ndk_path):
    """
    Read the NDK revision from source.properties.

    Args:
        ndk_path: NDK installation directory

    Returns:
        str: Revision such as "26.1.10909125", or None if it cannot be read
    """
    properties = os.path.join(ndk_path, "source.properties")
    if not os.path.isfile(properties):
        return None
    with open(properties, encoding="utf-8", errors="replace") as f:
        for line in f:
            if line.startswith("Pkg.Revision") and len(line.split("=")) == 2:
                return line.split("=")[1].strip() or None
    return None


def validate_environment(config, ndk_path=None) -> BuildEnvironment:
    """
    Resolve and validate the toolchain root.

    The path comes from ndk_path when given, otherwise from the environment
    variable named by config.toolchain_env.

    Raises:
        ConfigurationError: If the path is unset or does not exist
    """
    env_name = config.toolchain_env
    if not ndk_path:
        ndk_path = os.environ.get(env_name, "")

    if not ndk_path:
        print(f"Error: {env_name} environment variable is not set")
        print("Please set it to your Android NDK path, e.g.:")
        print(f"  export {env_name}=~/Android/Sdk/ndk/26.1.10909125")
        raise ConfigurationError(f"{env_name} environment variable is not set")

    ndk_path = os.path.expanduser(ndk_path)
    if not os.path.isdir(ndk_path):
        print(f"Error: {env_name} path does not exist: {ndk_path}")
        raise ConfigurationError(f"{env_name} path does not exist: {ndk_path}")

    env = BuildEnvironment(os.path.abspath(ndk_path), get_ndk_revision(ndk_path))
    print(f"Using Android NDK: {env.ndk_path}")
    if env.revision:
        print(f"NDK revision: {env.revision}")
    return env


def get_cpu_count(default=DEFAULT_JOBS) -> int:
    try:
        count = multiprocessing.cpu_count()
    except NotImplementedError:
        return default
    return count if count and count > 0 else default


def remove_path(path):
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def clean_build_outputs(config):
    """
    Remove the state of previous runs before building.

    Deletes every working directory matching the configured prefix, not just
    those of the current targets, and the whole output root.

    Returns:
        list: Paths that were removed
    """
    removed = []
    pattern = config.path(f"{config.build_dir_prefix}*")
    for path in sorted(glob.glob(pattern)):
        if os.path.isdir(path):
            shutil.rmtree(path)
            removed.append(path)
    output_root = config.get_output_root()
    if os.path.exists(output_root):
        remove_path(output_root)
        removed.append(output_root)
    return removed


def walk_files(root):
    """Relative paths of all regular files below root"""
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            files.append(os.path.relpath(os.path.join(dirpath, filename), root))
    return files


def print_directory_listing(root, depth=3):
    """
    Print the tree of an output directory.

    Uses tree(1) when installed, then find(1), then a directory walk. This
    is diagnostic only and never raises for a missing tool or a failing
    listing command.

    Returns:
        str: Which method produced the listing ("tree", "find" or "walk")
    """
    if find_tool("tree"):
        err_code, _ = exec_command(["tree", "-L", str(depth), root])
        if err_code == 0:
            return "tree"
    if find_tool("find"):
        err_code, _ = exec_command(["find", root, "-type", "f"])
        if err_code == 0:
            return "find"
    for rel_path in walk_files(root):
        print(os.path.join(root, rel_path))
    return "walk"


def get_shared_libraries(lib_dir):
    if not os.path.isdir(lib_dir):
        return []
    return sorted(
        f for f in glob.glob(os.path.join(lib_dir, SHARED_LIBRARY_PATTERN))
        if os.path.isfile(f)
    )


def parse_elf_arch(data):
    """
    Parse the machine type out of an ELF header.

    Args:
        data: Leading bytes of the file (at least 20)

    Returns:
        str: Architecture name, or None if data is not ELF
    """
    if len(data) < 20 or data[:4] != b"\x7fELF":
        return None
    endian = "<" if data[5] == 1 else ">"
    e_machine = struct.unpack(f"{endian}H", data[18:20])[0]
    return ELF_MACHINE_MAP.get(e_machine, f"unknown(0x{e_machine:X})")


def get_library_arch(library_path):
    try:
        with open(library_path, "rb") as f:
            return parse_elf_arch(f.read(20))
    except OSError:
        return None


def check_library_architecture(library_path, abi):
    """
    Print the architecture of a built library and flag ABI mismatches.

    Returns:
        bool: False only when the library is ELF for a different machine
    """
    arch = get_library_arch(library_path)
    name = os.path.basename(library_path)
    expected = ABI_ELF_MACHINE.get(abi)
    if arch is None:
        print(f"  {name} [not an ELF file]")
        return True
    if expected and arch != expected:
        print(f"  ⚠️  {name} [{arch}] does not match {abi} (expected {expected})")
        return False
    print(f"  {name} [{arch}]")
    return True
