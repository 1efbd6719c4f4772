#!/usr/bin/env python3
"""
Tests for environment validation, cleaning and output listing.

Run with: python3 -m pytest test_build_utils.py
"""

import io
import os
import struct
import tempfile
import unittest
from unittest.mock import patch

from ndkpack.build_scripts import build_utils
from ndkpack.build_scripts.build_config import BuildConfig
from ndkpack.build_scripts.build_errors import ConfigurationError


def elf_header(machine, elf_class=2, little_endian=True):
    endian = "<" if little_endian else ">"
    ident = b"\x7fELF" + bytes([elf_class, 1 if little_endian else 2, 1]) + b"\x00" * 9
    return ident + struct.pack(f"{endian}HH", 3, machine) + b"\x00" * 40


class UtilsTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.project_dir = self.tmp.name
        self.stdout = io.StringIO()
        patcher = patch("sys.stdout", self.stdout)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def touch(self, *parts, data=b""):
        path = os.path.join(self.project_dir, *parts)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        return path


class TestValidateEnvironment(UtilsTestCase):

    def test_explicit_path(self):
        self.touch("ndk", "source.properties", data=b"Pkg.Desc = Android NDK\nPkg.Revision = 26.1.10909125\n")
        env = build_utils.validate_environment(BuildConfig(), os.path.join(self.project_dir, "ndk"))
        self.assertEqual(env.ndk_path, os.path.join(os.path.abspath(self.project_dir), "ndk"))
        self.assertEqual(env.revision, "26.1.10909125")
        self.assertTrue(env.toolchain_file.endswith(os.path.join("build", "cmake", "android.toolchain.cmake")))

    def test_custom_environment_variable(self):
        ndk = os.path.join(self.project_dir, "ndk")
        os.makedirs(ndk)
        config = BuildConfig(toolchain_env="NDK_ROOT")
        with patch.dict(os.environ, {"NDK_ROOT": ndk}):
            env = build_utils.validate_environment(config)
        self.assertEqual(env.ndk_path, os.path.abspath(ndk))
        self.assertIsNone(env.revision)

    def test_unset(self):
        with patch.dict(os.environ, {"ANDROID_NDK": ""}):
            with self.assertRaises(ConfigurationError):
                build_utils.validate_environment(BuildConfig())
        self.assertIn("export ANDROID_NDK=", self.stdout.getvalue())

    def test_missing_directory(self):
        with self.assertRaises(ConfigurationError) as ctx:
            build_utils.validate_environment(BuildConfig(), os.path.join(self.project_dir, "missing"))
        self.assertIn("does not exist", str(ctx.exception))

    def test_file_is_not_a_toolchain_root(self):
        path = self.touch("ndk-file")
        with self.assertRaises(ConfigurationError):
            build_utils.validate_environment(BuildConfig(), path)


class TestNdkRevision(UtilsTestCase):

    def test_missing_properties(self):
        self.assertIsNone(build_utils.get_ndk_revision(self.project_dir))

    def test_no_revision_line(self):
        self.touch("source.properties", data=b"Pkg.Desc = Android NDK\n")
        self.assertIsNone(build_utils.get_ndk_revision(self.project_dir))


class TestCpuCount(unittest.TestCase):

    @patch("ndkpack.build_scripts.build_utils.multiprocessing.cpu_count", return_value=12)
    def test_detected(self, mock_count):
        self.assertEqual(build_utils.get_cpu_count(), 12)

    @patch("ndkpack.build_scripts.build_utils.multiprocessing.cpu_count", side_effect=NotImplementedError)
    def test_fallback(self, mock_count):
        self.assertEqual(build_utils.get_cpu_count(), 4)


class TestCleanBuildOutputs(UtilsTestCase):

    def test_removes_all_previous_state(self):
        self.touch("build-android-arm64-v8a", "CMakeCache.txt")
        self.touch("build-android-mips", "CMakeCache.txt")
        self.touch("android-libs", "x86", "lib", "libllama.so")
        self.touch("build-aar", "R.txt")
        self.touch("src", "main.c")

        config = BuildConfig(project_dir=self.project_dir).select(["x86"])
        removed = build_utils.clean_build_outputs(config)

        self.assertEqual(len(removed), 3)
        self.assertEqual(sorted(os.listdir(self.project_dir)), ["build-aar", "src"])

    def test_nothing_to_clean(self):
        self.assertEqual(build_utils.clean_build_outputs(BuildConfig(project_dir=self.project_dir)), [])


class TestDirectoryListing(UtilsTestCase):

    def setUp(self):
        super().setUp()
        self.touch("android-libs", "x86", "lib", "libllama.so")
        self.touch("android-libs", "x86", "include", "llama.h")
        self.root = os.path.join(self.project_dir, "android-libs")

    @patch("ndkpack.build_scripts.build_utils.exec_command", return_value=(0, ""))
    @patch("ndkpack.build_scripts.build_utils.find_tool", return_value="/usr/bin/tree")
    def test_tree(self, mock_find, mock_exec):
        self.assertEqual(build_utils.print_directory_listing(self.root), "tree")
        mock_exec.assert_called_once_with(["tree", "-L", "3", self.root])

    @patch("ndkpack.build_scripts.build_utils.exec_command", return_value=(0, ""))
    @patch("ndkpack.build_scripts.build_utils.find_tool", side_effect=lambda name: None if name == "tree" else "/usr/bin/find")
    def test_find_when_tree_missing(self, mock_find, mock_exec):
        self.assertEqual(build_utils.print_directory_listing(self.root), "find")
        mock_exec.assert_called_once_with(["find", self.root, "-type", "f"])

    @patch("ndkpack.build_scripts.build_utils.exec_command", return_value=(1, "broken"))
    @patch("ndkpack.build_scripts.build_utils.find_tool", return_value="/usr/bin/tool")
    def test_walk_when_tools_fail(self, mock_find, mock_exec):
        self.assertEqual(build_utils.print_directory_listing(self.root), "walk")
        self.assertIn(os.path.join(self.root, "x86", "lib", "libllama.so"), self.stdout.getvalue())

    @patch("ndkpack.build_scripts.build_utils.exec_command")
    @patch("ndkpack.build_scripts.build_utils.find_tool", return_value=None)
    def test_walk_without_tools(self, mock_find, mock_exec):
        self.assertEqual(build_utils.print_directory_listing(self.root), "walk")
        mock_exec.assert_not_called()
        self.assertEqual(
            build_utils.walk_files(self.root),
            [os.path.join("x86", "include", "llama.h"), os.path.join("x86", "lib", "libllama.so")],
        )


class TestLibraryInspection(UtilsTestCase):

    def test_parse_elf_arch(self):
        self.assertEqual(build_utils.parse_elf_arch(elf_header(0xB7)), "aarch64")
        self.assertEqual(build_utils.parse_elf_arch(elf_header(0x28, elf_class=1)), "arm")
        self.assertEqual(build_utils.parse_elf_arch(elf_header(0x3E, little_endian=False)), "x86_64")
        self.assertEqual(build_utils.parse_elf_arch(elf_header(0x99)), "unknown(0x99)")
        self.assertIsNone(build_utils.parse_elf_arch(b"!<arch>\n" + b"\x00" * 20))
        self.assertIsNone(build_utils.parse_elf_arch(b"\x7fELF"))

    def test_shared_libraries_only(self):
        self.touch("lib", "libllama.so")
        self.touch("lib", "libggml.so")
        self.touch("lib", "libllama.a")
        self.touch("lib", "pkgconfig", "llama.pc")
        libs = build_utils.get_shared_libraries(os.path.join(self.project_dir, "lib"))
        self.assertEqual([os.path.basename(lib) for lib in libs], ["libggml.so", "libllama.so"])
        self.assertEqual(build_utils.get_shared_libraries(os.path.join(self.project_dir, "nope")), [])

    def test_check_library_architecture(self):
        lib = self.touch("libllama.so", data=elf_header(0xB7))
        self.assertTrue(build_utils.check_library_architecture(lib, "arm64-v8a"))
        self.assertFalse(build_utils.check_library_architecture(lib, "x86"))
        self.assertIn("does not match x86", self.stdout.getvalue())
        text = self.touch("notes.so", data=b"text")
        self.assertTrue(build_utils.check_library_architecture(text, "x86"))


if __name__ == "__main__":
    unittest.main()
