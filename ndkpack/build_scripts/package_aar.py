#!/usr/bin/env python3
# -- coding: utf-8 --
#
# package_aar.py
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
Assemble the per-ABI shared libraries into a minimal AAR.

Staging layout:
    AndroidManifest.xml
    classes.jar          (empty jar)
    R.txt                (empty)
    jni/<abi>/*.so

Packaging is optional on top of the installed libraries. A missing archive
tool is reported as a warning and never fails the build.
"""

import os
import shutil
import zipfile

from ndkpack.build_scripts.build_config import ARCHIVER_PYTHON, ARCHIVER_ZIP
from ndkpack.build_scripts.build_errors import OptionalToolMissing
from ndkpack.build_scripts.build_utils import get_shared_libraries, remove_path
from ndkpack.utils.cmd.cmd_util import exec_command, find_tool

MANIFEST_FILE = "AndroidManifest.xml"
CLASSES_JAR_FILE = "classes.jar"
R_TXT_FILE = "R.txt"
JNI_DIR = "jni"

# entries of the archive, in the order they are added
AAR_ENTRIES = (MANIFEST_FILE, CLASSES_JAR_FILE, JNI_DIR, R_TXT_FILE)

ANDROID_MANIFEST_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package="{package}">
    <uses-sdk android:minSdkVersion="{min_sdk}" android:targetSdkVersion="{target_sdk}"/>
</manifest>
"""

JAR_MANIFEST = "Manifest-Version: 1.0\r\nCreated-By: ndkpack\r\n\r\n"


def get_android_manifest(config) -> str:
    return ANDROID_MANIFEST_TEMPLATE.format(
        package=config.package_id,
        min_sdk=config.min_sdk_version,
        target_sdk=config.target_sdk_version,
    )


def write_empty_jar(jar_path):
    # same content `jar cf` produces for an empty class directory
    with zipfile.ZipFile(jar_path, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("META-INF/", "")
        zf.writestr("META-INF/MANIFEST.MF", JAR_MANIFEST)


def create_aar_staging(config) -> str:
    """
    Recreate the staging directory from the installed libraries.

    Only *.so files from <output_root>/<abi>/lib are copied. A target
    without libraries gets an empty jni/<abi> folder.

    Returns:
        str: Path of the staging directory
    """
    staging_dir = config.get_staging_dir()
    remove_path(staging_dir)
    os.makedirs(os.path.join(staging_dir, JNI_DIR))

    for target in config.targets:
        abi_dir = os.path.join(staging_dir, JNI_DIR, target.abi)
        os.makedirs(abi_dir, exist_ok=True)
        lib_dir = os.path.join(config.get_install_dir(target), "lib")
        for lib in get_shared_libraries(lib_dir):
            shutil.copy(lib, abi_dir)

    with open(os.path.join(staging_dir, MANIFEST_FILE), "w", encoding="utf-8") as f:
        f.write(get_android_manifest(config))
    write_empty_jar(os.path.join(staging_dir, CLASSES_JAR_FILE))
    open(os.path.join(staging_dir, R_TXT_FILE), "w").close()
    return staging_dir


def get_archive_members(staging_dir):
    """Archive names of everything to pack, in AAR_ENTRIES order"""
    members = []
    for entry in AAR_ENTRIES:
        entry_path = os.path.join(staging_dir, entry)
        if os.path.isdir(entry_path):
            # directories get their own entry so empty ABI folders survive
            for dirpath, dirnames, filenames in os.walk(entry_path):
                dirnames.sort()
                rel_dir = os.path.relpath(dirpath, staging_dir).replace(os.sep, "/")
                members.append(rel_dir + "/")
                members.extend(f"{rel_dir}/{name}" for name in sorted(filenames))
        elif os.path.isfile(entry_path):
            members.append(entry)
    return members


def archive_with_zip(staging_dir, archive_path):
    """
    Compress the staging directory with zip(1).

    Raises:
        OptionalToolMissing: If zip is not installed
    """
    zip_tool = find_tool("zip")
    if not zip_tool:
        raise OptionalToolMissing("zip")
    # zip runs inside the staging dir, a relative archive path would land there
    cmd = [zip_tool, "-r", os.path.abspath(archive_path)] + list(AAR_ENTRIES)
    print(f"archive cmd: [{' '.join(cmd)}]")
    err_code, _ = exec_command(cmd, cwd=staging_dir)
    return err_code == 0


def archive_with_zipfile(staging_dir, archive_path):
    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for member in get_archive_members(staging_dir):
            zf.write(os.path.join(staging_dir, member), member)
            print(f"  + {member}")
    return True


ARCHIVE_FUNCTIONS = {
    ARCHIVER_ZIP: archive_with_zip,
    ARCHIVER_PYTHON: archive_with_zipfile,
}


def print_archive_tree(archive_path, indent="    "):
    """Print the entries of an archive as a tree"""
    tree = {}
    with zipfile.ZipFile(archive_path) as zf:
        for info in zf.infolist():
            current = tree
            parts = [part for part in info.filename.split("/") if part]
            for i, part in enumerate(parts):
                is_file = i == len(parts) - 1 and not info.filename.endswith("/")
                current = current.setdefault(part, {"__size__": info.file_size} if is_file else {})
    print(f"{indent}AAR contents:")
    _print_tree_level(tree, indent, "")


def _print_tree_level(tree, base_indent, prefix):
    items = sorted(tree.items())
    for i, (name, subtree) in enumerate(items):
        is_last = i == len(items) - 1
        connector = "└── " if is_last else "├── "
        if "__size__" in subtree:
            print(f"{base_indent}{prefix}{connector}{name} ({subtree['__size__'] / 1024:.1f} KB)")
        else:
            print(f"{base_indent}{prefix}{connector}{name}/")
            _print_tree_level(subtree, base_indent, prefix + ("    " if is_last else "│   "))


def print_usage(archive_name):
    print("")
    print("To use this AAR in your Android project:")
    print(f"1. Copy {archive_name} to your project's libs/ directory")
    print("2. Add to your app/build.gradle:")
    print(f"   implementation files('libs/{archive_name}')")


def package_aar(config):
    """
    Build the AAR from the installed libraries of all targets.

    Must only be called after every target installed successfully.

    Returns:
        str: Path of the created archive, or None when the archive could not
        be produced (reported as a warning)
    """
    print("")
    print("=" * 42)
    print("Creating AAR package (optional)")
    print("=" * 42)

    archive_path = config.get_archive_path()
    archive = ARCHIVE_FUNCTIONS[config.archiver]
    try:
        staging_dir = create_aar_staging(config)
        remove_path(archive_path)
        archived = archive(staging_dir, archive_path)
    except (OptionalToolMissing, OSError, zipfile.BadZipFile) as e:
        print(f"⚠ AAR package creation skipped ({e})")
        return None

    if not archived or not os.path.isfile(archive_path):
        print(f"⚠ AAR package creation skipped ({config.archiver} did not produce {archive_path})")
        return None

    print(f"✓ AAR package created: {archive_path}")
    try:
        print_archive_tree(archive_path)
    except (OSError, zipfile.BadZipFile) as e:
        print(f"⚠ Could not list {archive_path}: {e}")
    print_usage(config.archive_name)
    return archive_path
