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
import shutil
import subprocess

# exit codes a shell reports for a command it cannot find or cannot run
COMMAND_NOT_FOUND = 127
COMMAND_NOT_EXECUTABLE = 126


def decode_bytes(input: bytes) -> str:
    try:
        return bytes.decode(input, "UTF-8")
    except UnicodeDecodeError:
        return bytes.decode(input, "UTF-8", errors="replace")


def format_command(command) -> str:
    if isinstance(command, str):
        return command
    return " ".join(_quote(arg) for arg in command)


def _quote(arg):
    arg = str(arg)
    if not arg or any(c in arg for c in " \t\"'"):
        return '"' + arg.replace('"', '\\"') + '"'
    return arg


def find_tool(name):
    """
    Locate an executable on PATH.

    Returns:
        str: Absolute path of the tool, or None when it is not installed
    """
    return shutil.which(name)


def _spawn_failed(err_code, reason, error, command, echo, log_file):
    err_msg = f"{reason}: {error.filename or format_command(command)}"
    if echo:
        print(err_msg)
    if log_file:
        log_file.write(err_msg + "\n")
    return err_code, err_msg


def exec_command(command, cwd=None, log_path=None, echo=True):
    """
    Run a command synchronously and capture its combined stdout/stderr.

    Output is echoed line by line while the command runs and, when log_path
    is given, also written to that file.

    Args:
        command: Argument list (or a string for a single program)
        cwd: Working directory of the child process
        log_path: Optional file receiving the captured output
        echo: Print output lines as they arrive

    Returns:
        tuple: (err_code, err_msg)
            - err_code: Process exit code, 127 if the program does not exist,
              126 if it cannot be executed
            - err_msg: Captured output as decoded string
    """
    log_file = None
    if log_path:
        os.makedirs(os.path.dirname(os.path.abspath(log_path)), exist_ok=True)
        log_file = open(log_path, "w", encoding="utf-8")
    try:
        try:
            compile_popen = subprocess.Popen(
                command,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            return _spawn_failed(COMMAND_NOT_FOUND, "command not found", e, command, echo, log_file)
        except PermissionError as e:
            return _spawn_failed(COMMAND_NOT_EXECUTABLE, "permission denied", e, command, echo, log_file)

        lines = []
        for raw in compile_popen.stdout:
            line = decode_bytes(raw)
            lines.append(line)
            if echo:
                print(line, end="")
            if log_file:
                log_file.write(line)
        compile_popen.wait()
        return compile_popen.returncode, "".join(lines)
    finally:
        if log_file:
            log_file.close()
