"""
Pytest configuration for ls-python tests.

Provides a test environment that builds small file trees in a temporary
directory, runs the Python ls as a subprocess and, for oracle tests,
runs GNU ls on the same tree. Both must produce identical:
- Return codes
- stdout output
- stderr output
"""

import os
import shutil
import subprocess
import sys
from types import SimpleNamespace

import pytest

from ls_python.session import ListingSession
from ls_python.types import Entry, FileType, ListingConfig, RawEntry


SRC_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src")


def find_gnu_ls():
    """Return the path of a GNU coreutils ls, or None."""
    path = shutil.which("ls")
    if path is None:
        return None
    try:
        proc = subprocess.run([path, "--version"], capture_output=True, timeout=10)
    except (OSError, subprocess.TimeoutExpired):
        return None
    if b"GNU coreutils" not in proc.stdout:
        return None
    return path


GNU_LS = find_gnu_ls()


class LsTestEnv:
    """Test environment for running ls commands on a scratch tree."""

    def __init__(self, tmpdir):
        self.root = str(tmpdir)
        self._clock = 1_600_000_000

    def path(self, rel):
        return os.path.join(self.root, rel)

    def make_file(self, rel, content="", mtime=None):
        """Create a file; MTIME defaults to a fresh, strictly increasing time."""
        full_path = self.path(rel)
        parent = os.path.dirname(full_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(full_path, "w") as f:
            f.write(content)
        self.touch(rel, mtime)
        return full_path

    def make_dir(self, rel):
        full_path = self.path(rel)
        os.makedirs(full_path, exist_ok=True)
        return full_path

    def make_link(self, rel, dest):
        full_path = self.path(rel)
        parent = os.path.dirname(full_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        os.symlink(dest, full_path)
        return full_path

    def touch(self, rel, mtime=None):
        if mtime is None:
            self._clock += 10
            mtime = self._clock
        os.utime(self.path(rel), (mtime, mtime), follow_symlinks=False)

    def make_tree(self, files):
        """
        Create a tree from a dict.

        files: dict mapping relative paths to content (or None for directories)
        """
        for rel, content in files.items():
            if content is None:
                self.make_dir(rel)
            else:
                self.make_file(rel, content)

    def _env(self, env):
        run_env = os.environ.copy()
        for var in ("COLUMNS", "TABSIZE", "LS_COLORS", "QUOTING_STYLE", "LS_PYTHON_DEBUG"):
            run_env.pop(var, None)
        run_env["LC_ALL"] = "C"
        run_env["TZ"] = "UTC"
        if env:
            run_env.update(env)
        return run_env

    def run_python_ls(self, args, env=None):
        """Run Python ls and return (returncode, stdout, stderr) as bytes."""
        run_env = self._env(env)
        run_env["PYTHONPATH"] = SRC_DIR + os.pathsep + run_env.get("PYTHONPATH", "")
        proc = subprocess.run(
            [sys.executable, "-m", "ls_python"] + list(args),
            capture_output=True,
            cwd=self.root,
            env=run_env,
        )
        return proc.returncode, proc.stdout, proc.stderr

    def run_gnu_ls(self, args, env=None):
        """Run GNU ls and return (returncode, stdout, stderr) as bytes."""
        if GNU_LS is None:
            pytest.skip("GNU ls not found")
        # argv[0] is "ls" so diagnostics carry the same program name
        proc = subprocess.run(
            ["ls", "--quoting-style=literal"] + list(args),
            executable=GNU_LS,
            capture_output=True,
            cwd=self.root,
            env=self._env(env),
        )
        return proc.returncode, proc.stdout, proc.stderr


@pytest.fixture
def ls_env(tmp_path):
    """Create a fresh ls test environment."""
    return LsTestEnv(tmp_path)


def assert_ls_match(ls_env, args, gnu_args=None, env=None, compare_stderr=True):
    """
    Run both GNU and Python ls with the same args and assert they match.

    Args:
        ls_env: LsTestEnv instance
        args: command line arguments for the Python ls
        gnu_args: arguments for GNU ls when they must differ
        env: optional environment variables
        compare_stderr: also compare diagnostics byte for byte
    """
    gnu_rc, gnu_stdout, gnu_stderr = ls_env.run_gnu_ls(gnu_args if gnu_args is not None else args, env)
    py_rc, py_stdout, py_stderr = ls_env.run_python_ls(args, env)

    assert gnu_rc == py_rc, "Return code mismatch: GNU=%d, Python=%d\nGNU stderr: %r\nPython stderr: %r" % (
        gnu_rc,
        py_rc,
        gnu_stderr,
        py_stderr,
    )
    assert gnu_stdout == py_stdout, "stdout mismatch:\nGNU: %r\nPython: %r" % (gnu_stdout, py_stdout)
    if compare_stderr:
        assert gnu_stderr == py_stderr, "stderr mismatch:\nGNU: %r\nPython: %r" % (gnu_stderr, py_stderr)
    return gnu_rc, gnu_stdout, gnu_stderr


# =============================================================================
# In-process helpers
# =============================================================================


def entry(name, file_type=FileType.REGULAR, size=None, mtime=None, link_mode=None):
    """Build an Entry with a fake stat result for sort tests."""
    if isinstance(name, str):
        name = os.fsencode(name)
    e = Entry(name=name, file_type=file_type, link_mode=link_mode)
    if size is not None or mtime is not None:
        mode = 0o040755 if file_type is FileType.DIRECTORY else 0o100644
        ns = int(mtime or 0) * 1_000_000_000
        e.stat = SimpleNamespace(
            st_mode=mode,
            st_ino=0,
            st_dev=0,
            st_nlink=1,
            st_uid=0,
            st_gid=0,
            st_size=size or 0,
            st_mtime_ns=ns,
            st_ctime_ns=ns,
            st_atime_ns=ns,
        )
        e.stat_ok = True
    return e


class FakeStream:
    """Directory stream replaying scripted items; an OSError item is raised."""

    def __init__(self, items):
        self.items = list(items)
        self.closed = False

    def read(self):
        if not self.items:
            return None
        item = self.items.pop(0)
        if isinstance(item, OSError):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeReader:
    """Directory-stream provider backed by a dict of path -> items."""

    def __init__(self, listings):
        self.listings = listings
        self.opened = []

    def open(self, path):
        self.opened.append(path)
        if path not in self.listings:
            raise FileNotFoundError(2, "No such file or directory", path)
        return FakeStream(self.listings[path])


def raw(name, file_type=FileType.REGULAR, inode=None):
    return RawEntry(os.fsencode(name), file_type, inode)


def make_session(**kwargs):
    return ListingSession(ListingConfig(**kwargs), on_diagnostic=None)
