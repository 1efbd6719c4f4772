#!/usr/bin/env python3
# -- coding: utf-8 --
#
# build_config.py
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
Build configuration for multi-ABI Android builds.

The configuration is an immutable BuildConfig built once at startup, either
from the defaults below or from an NDKPACK.toml file in the project
directory. Everything the orchestrator needs (targets, CMake options, paths,
package settings) is read from it, so tests can pass a small synthetic
configuration instead of the full ABI table.
"""

import os
import sys
from typing import Dict, List, NamedTuple, Optional, Tuple

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ndkpack.build_scripts.build_errors import ConfigurationError

CONFIG_FILE_NAME = "NDKPACK.toml"

ARCHIVER_ZIP = "zip"
ARCHIVER_PYTHON = "python"
ARCHIVERS = (ARCHIVER_ZIP, ARCHIVER_PYTHON)


class Target(NamedTuple):
    """One ABI together with the compiler flags used for it"""

    abi: str
    flags: Tuple[str, ...] = ()

    def flags_string(self) -> str:
        return " ".join(self.flags)


# Android ABIs and their architecture flags, in build order
DEFAULT_TARGETS = (
    Target("arm64-v8a", ("-march=armv8.2-a+dotprod",)),
    Target("armeabi-v7a", ("-march=armv7-a", "-mfloat-abi=softfp", "-mfpu=neon")),
    Target("x86_64", ("-march=x86-64",)),
    Target("x86", ("-march=i686",)),
)

# Feature switches passed to every configure, in this order
DEFAULT_CMAKE_OPTIONS = (
    ("BUILD_SHARED_LIBS", "ON"),
    ("LLAMA_BUILD_EXAMPLES", "OFF"),
    ("LLAMA_BUILD_TOOLS", "OFF"),
    ("LLAMA_BUILD_TESTS", "OFF"),
    ("LLAMA_BUILD_SERVER", "OFF"),
    ("LLAMA_BUILD_COMMON", "ON"),
    ("LLAMA_CURL", "OFF"),
    ("GGML_OPENMP", "OFF"),
    ("GGML_LLAMAFILE", "OFF"),
)


class BuildConfig(NamedTuple):
    project_name: str = "llama"
    project_dir: str = "."
    source_dir: str = "."
    targets: Tuple[Target, ...] = DEFAULT_TARGETS
    cmake_options: Tuple[Tuple[str, str], ...] = DEFAULT_CMAKE_OPTIONS
    build_type: str = "Release"
    generator: str = ""
    min_sdk_version: int = 23
    target_sdk_version: int = 34
    toolchain_env: str = "ANDROID_NDK"
    build_dir_prefix: str = "build-android-"
    output_root: str = "android-libs"
    staging_dir: str = "build-aar"
    archive_name: str = "llama-android.aar"
    package_id: str = "com.ggml.llama"
    archiver: str = ARCHIVER_ZIP
    package_enabled: bool = True

    @property
    def abis(self) -> List[str]:
        return [target.abi for target in self.targets]

    def path(self, *parts) -> str:
        return os.path.join(self.project_dir, *parts)

    def get_source_path(self) -> str:
        return os.path.normpath(self.path(self.source_dir))

    def get_build_dir(self, target: Target) -> str:
        return self.path(f"{self.build_dir_prefix}{target.abi}")

    def get_install_dir(self, target: Target) -> str:
        return self.path(self.output_root, target.abi)

    def get_output_root(self) -> str:
        return self.path(self.output_root)

    def get_staging_dir(self) -> str:
        return self.path(self.staging_dir)

    def get_archive_path(self) -> str:
        return self.path(self.archive_name)

    def select(self, abis) -> "BuildConfig":
        """
        Restrict the configuration to a subset of targets.

        Args:
            abis: ABI names in the order they should be built

        Raises:
            ConfigurationError: If an ABI is not configured or listed twice
        """
        by_abi = {target.abi: target for target in self.targets}
        selected = []
        for abi in abis:
            if abi not in by_abi:
                raise ConfigurationError(
                    f"Unknown ABI '{abi}', configured ABIs: {', '.join(self.abis)}"
                )
            if by_abi[abi] in selected:
                raise ConfigurationError(f"ABI '{abi}' requested more than once")
            selected.append(by_abi[abi])
        if not selected:
            raise ConfigurationError("No ABI selected")
        return self._replace(targets=tuple(selected))


def format_option_value(value) -> str:
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return str(value)


def _read_targets(entries) -> Tuple[Target, ...]:
    if not isinstance(entries, list) or not entries:
        raise ConfigurationError("[[targets]] must be a non-empty list of tables")
    targets = []
    for entry in entries:
        abi = entry.get("abi") if isinstance(entry, dict) else None
        if not abi or not isinstance(abi, str):
            raise ConfigurationError(f"Target entry without a valid 'abi': {entry}")
        flags = entry.get("flags", [])
        if isinstance(flags, str):
            flags = flags.split()
        targets.append(Target(abi, tuple(str(flag) for flag in flags)))
    abis = [target.abi for target in targets]
    if len(set(abis)) != len(abis):
        raise ConfigurationError(f"Duplicate ABI in [[targets]]: {abis}")
    return tuple(targets)


def _read_options(options: Dict) -> Tuple[Tuple[str, str], ...]:
    # keys given in the file override the defaults, new keys are appended
    merged = dict(DEFAULT_CMAKE_OPTIONS)
    for key, value in options.items():
        merged[key] = format_option_value(value)
    return tuple(merged.items())


def _read_table(data: Dict, name: str) -> Dict:
    table = data.get(name, {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[{name}] must be a table, got {type(table).__name__}")
    return table


def _read_bool(table: Dict, key: str, default: bool) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be true or false, got {value!r}")
    return value


def config_from_dict(data: Dict, project_dir: str = ".") -> BuildConfig:
    """Build a BuildConfig from parsed NDKPACK.toml data"""
    defaults = BuildConfig()
    project = _read_table(data, "project")
    android = _read_table(data, "android")
    build = _read_table(data, "build")
    package = _read_table(data, "package")

    archiver = package.get("archiver", defaults.archiver)
    if archiver not in ARCHIVERS:
        raise ConfigurationError(
            f"Unknown archiver '{archiver}', expected one of: {', '.join(ARCHIVERS)}"
        )

    try:
        min_sdk = int(android.get("min_sdk", defaults.min_sdk_version))
        target_sdk = int(android.get("target_sdk", defaults.target_sdk_version))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid SDK version in [android]: {e}")

    targets = defaults.targets
    if "targets" in data:
        targets = _read_targets(data["targets"])

    return BuildConfig(
        project_name=project.get("name", defaults.project_name),
        project_dir=project_dir,
        source_dir=project.get("source_dir", defaults.source_dir),
        targets=targets,
        cmake_options=_read_options(_read_table(build, "options")),
        build_type=build.get("type", defaults.build_type),
        generator=build.get("generator", defaults.generator),
        min_sdk_version=min_sdk,
        target_sdk_version=target_sdk,
        toolchain_env=android.get("toolchain_env", defaults.toolchain_env),
        build_dir_prefix=build.get("build_dir_prefix", defaults.build_dir_prefix),
        output_root=build.get("output_dir", defaults.output_root),
        staging_dir=package.get("staging_dir", defaults.staging_dir),
        archive_name=package.get("archive", defaults.archive_name),
        package_id=android.get("package", defaults.package_id),
        archiver=archiver,
        package_enabled=_read_bool(package, "enabled", defaults.package_enabled),
    )


def load_build_config(project_dir: str = None, config_file: Optional[str] = None) -> BuildConfig:
    """
    Load the build configuration of a project.

    Args:
        project_dir: Project directory (default: current working directory)
        config_file: Explicit config path; must exist when given

    Returns:
        BuildConfig: Parsed configuration, or defaults when the project has
        no NDKPACK.toml

    Raises:
        ConfigurationError: If the file cannot be read or is malformed
    """
    project_dir = os.path.abspath(project_dir or os.getcwd())
    if config_file is None:
        config_file = os.path.join(project_dir, CONFIG_FILE_NAME)
        if not os.path.isfile(config_file):
            print(f"{CONFIG_FILE_NAME} not found, using default configuration")
            return BuildConfig(project_dir=project_dir)
    elif not os.path.isfile(config_file):
        raise ConfigurationError(f"Config file does not exist: {config_file}")

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Error reading {config_file}: {e}")

    print(f"Using configuration: {config_file}")
    return config_from_dict(data, project_dir)
