"""
Testing the command-line interface: option parsing, configuration from
the environment, and end-to-end output through main().
"""

import locale
import os

import pytest

from ls_python import cli
from ls_python.cli import build_config, parse_cli_options
from ls_python.types import Dereference, Format, IgnoreMode, SortKey, TimeType


@pytest.fixture
def c_locale(monkeypatch):
    """Run the CLI in the C locale with a clean environment."""
    monkeypatch.setenv("LC_ALL", "C")
    for var in ("COLUMNS", "TABSIZE", "LS_PYTHON_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    previous = locale.setlocale(locale.LC_ALL)
    yield
    locale.setlocale(locale.LC_ALL, previous)


def run_main(monkeypatch, capsysbinary, args):
    """Run main() with ARGS and return (exit status, stdout, stderr)."""
    monkeypatch.setattr("sys.argv", ["ls"] + list(args))
    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    out, err = capsysbinary.readouterr()
    return exc_info.value.code, out, err


def config_for(args, isatty=False):
    options, _ = parse_cli_options(args)
    return build_config(options, isatty)


class TestOptionParsing:
    """Short, bundled and long options."""

    def test_bundled_short_options(self):
        options, paths = parse_cli_options(["-laR", "dir"])
        assert options["format"] is Format.LONG
        assert options["ignore_mode"] is IgnoreMode.MINIMAL
        assert options["recursive"] is True
        assert paths == ["dir"]

    @pytest.mark.parametrize(
        "args",
        [["-w40"], ["-w", "40"], ["--width=40"], ["--width", "40"], ["-1w", "40"]],
    )
    def test_width_spellings(self, args):
        options, paths = parse_cli_options(args)
        assert options["width"] == "40"
        assert paths == []

    def test_ignore_patterns_accumulate(self):
        options, _ = parse_cli_options(["-I*.o", "-I", "*.a", "--ignore=*.so", "--hide", "x*"])
        assert options["ignore"] == ["*.o", "*.a", "*.so"]
        assert options["hide"] == ["x*"]

    def test_double_dash_ends_options(self):
        options, paths = parse_cli_options(["-a", "--", "-l", "b"])
        assert "format" not in options
        assert paths == ["-l", "b"]

    def test_single_dash_is_a_path(self):
        _, paths = parse_cli_options(["-"])
        assert paths == ["-"]

    def test_long_flags(self):
        options, _ = parse_cli_options(
            ["--all", "--recursive", "--group-directories-first", "--dereference"]
        )
        assert options["ignore_mode"] is IgnoreMode.MINIMAL
        assert options["recursive"] is True
        assert options["dirs_first"] is True
        assert options["dereference"] is Dereference.ALWAYS

    def test_word_options(self):
        options, _ = parse_cli_options(["--sort=version", "--time=ctime", "--format=commas"])
        assert options["sort"] is SortKey.VERSION
        assert options["time"] is TimeType.CTIME
        assert options["format"] is Format.WITH_COMMAS

    def test_invalid_sort_word(self):
        with pytest.raises(cli.LsCLIError) as exc_info:
            parse_cli_options(["--sort=bogus"])
        assert "invalid argument 'bogus' for '--sort'" in exc_info.value.message

    def test_missing_argument(self):
        with pytest.raises(cli.LsCLIError) as exc_info:
            parse_cli_options(["-w"])
        assert "option requires an argument -- 'w'" in exc_info.value.message


class TestBuildConfig:
    """Options and environment turned into a ListingConfig."""

    def test_defaults_when_piped(self, c_locale):
        config = config_for([])
        assert config.format is Format.ONE_PER_LINE
        assert config.sort_key is SortKey.NAME
        assert config.hide_control_chars is False
        assert config.line_width == 80

    def test_defaults_on_terminal(self, c_locale):
        config = config_for([], isatty=True)
        assert config.format is Format.MANY_PER_LINE
        assert config.hide_control_chars is True

    def test_time_sort(self, c_locale):
        assert config_for(["-t"]).sort_key is SortKey.MTIME
        assert config_for(["-tu"]).sort_key is SortKey.ATIME

    def test_ctime_without_long_sorts_by_ctime(self, c_locale):
        assert config_for(["-c"]).sort_key is SortKey.CTIME

    def test_ctime_with_long_only_shows_ctime(self, c_locale):
        config = config_for(["-lc"])
        assert config.sort_key is SortKey.NAME
        assert config.time_type is TimeType.CTIME
        assert config_for(["-lct"]).sort_key is SortKey.CTIME

    def test_f_means_all_unsorted(self, c_locale):
        config = config_for(["-f"])
        assert config.ignore_mode is IgnoreMode.MINIMAL
        assert config.sort_key is SortKey.NONE

    def test_one_does_not_override_long(self, c_locale):
        assert config_for(["-l1"]).format is Format.LONG
        assert config_for(["-1"]).format is Format.ONE_PER_LINE

    def test_backups(self, c_locale):
        assert config_for(["-B"]).ignore_patterns == ("*~", ".*~")

    def test_columns_environment(self, c_locale, monkeypatch):
        monkeypatch.setenv("COLUMNS", "40")
        assert config_for(["-C"]).line_width == 40

    def test_width_option_beats_environment(self, c_locale, monkeypatch):
        monkeypatch.setenv("COLUMNS", "40")
        assert config_for(["-C", "-w", "100"]).line_width == 100

    def test_invalid_columns_environment(self, c_locale, monkeypatch, capsys):
        monkeypatch.setenv("COLUMNS", "wide")
        assert config_for(["-C"]).line_width == 80
        assert "ignoring invalid width in environment variable COLUMNS" in capsys.readouterr().err

    def test_invalid_width_option(self, c_locale):
        with pytest.raises(cli.LsError) as exc_info:
            config_for(["-w", "abc"])
        assert exc_info.value.message == "invalid line width: 'abc'"

    def test_tabsize(self, c_locale, monkeypatch):
        assert config_for(["-T", "4"]).tabsize == 4
        monkeypatch.setenv("TABSIZE", "2")
        assert config_for([]).tabsize == 2

    def test_debug_level_from_environment(self, c_locale, monkeypatch):
        monkeypatch.setenv("LS_PYTHON_DEBUG", "3")
        assert config_for([]).verbose == 3


class TestMain:
    """End-to-end runs through main()."""

    def test_single_directory_has_no_header(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"b": "", "a": ""})
        monkeypatch.chdir(ls_env.root)
        status, out, err = run_main(monkeypatch, capsysbinary, [])
        assert status == 0
        assert out == b"a\nb\n"
        assert err == b""

    def test_two_directories_have_headers(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"d1/x": "", "d2/y": ""})
        monkeypatch.chdir(ls_env.root)
        status, out, _ = run_main(monkeypatch, capsysbinary, ["d2", "d1"])
        assert status == 0
        assert out == b"d1:\nx\n\nd2:\ny\n"

    def test_files_then_directories(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"f": "", "d/x": ""})
        monkeypatch.chdir(ls_env.root)
        _, out, _ = run_main(monkeypatch, capsysbinary, ["d", "f"])
        assert out == b"f\n\nd:\nx\n"

    def test_recursive(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"a/c": "", "b": ""})
        monkeypatch.chdir(ls_env.root)
        _, out, _ = run_main(monkeypatch, capsysbinary, ["-R"])
        assert out == b".:\na\nb\n\n./a:\nc\n"

    def test_missing_file(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"f": ""})
        monkeypatch.chdir(ls_env.root)
        status, out, err = run_main(monkeypatch, capsysbinary, ["nope", "f"])
        assert status == 2
        assert out == b"f\n"
        assert err == b"ls: cannot access 'nope': No such file or directory\n"

    def test_missing_single_directory_argument(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"d/x": ""})
        monkeypatch.chdir(ls_env.root)
        status, out, _ = run_main(monkeypatch, capsysbinary, ["nope", "d"])
        assert status == 2
        # only one directory survives, but two arguments were given
        assert out == b"d:\nx\n"

    def test_invalid_option(self, c_locale, monkeypatch, capsysbinary):
        status, out, err = run_main(monkeypatch, capsysbinary, ["-z"])
        assert status == 2
        assert out == b""
        assert err == b"ls: invalid option -- 'z'\nTry 'ls --help' for more information.\n"

    def test_unrecognized_long_option(self, c_locale, monkeypatch, capsysbinary):
        status, _, err = run_main(monkeypatch, capsysbinary, ["--frobnicate"])
        assert status == 2
        assert err.startswith(b"ls: unrecognized option '--frobnicate'\n")

    def test_invalid_width(self, c_locale, monkeypatch, capsysbinary):
        status, _, err = run_main(monkeypatch, capsysbinary, ["-w", "x"])
        assert status == 2
        assert err == b"ls: invalid line width: 'x'\n"

    def test_help(self, c_locale, monkeypatch, capsysbinary):
        status, out, _ = run_main(monkeypatch, capsysbinary, ["--help"])
        assert status == 0
        assert out.startswith(b"Usage: ls [OPTION]... [FILE]...")

    def test_version(self, c_locale, monkeypatch, capsysbinary):
        status, out, _ = run_main(monkeypatch, capsysbinary, ["--version"])
        assert status == 0
        assert out.startswith(b"ls (Ls-Python) ")

    def test_columns_output(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"a": "", "bb": "", "ccc": ""})
        monkeypatch.chdir(ls_env.root)
        _, out, _ = run_main(monkeypatch, capsysbinary, ["-C", "-w", "10"])
        assert out == b"a  bb  ccc\n"

    def test_commas_output(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"a": "", "bb": ""})
        monkeypatch.chdir(ls_env.root)
        _, out, _ = run_main(monkeypatch, capsysbinary, ["-m"])
        assert out == b"a, bb\n"

    def test_c_locale_lists_undecodable_names_quietly(self, ls_env, c_locale, monkeypatch, capsysbinary):
        ls_env.make_tree({"a": "", "z": ""})
        with open(os.path.join(os.fsencode(ls_env.root), b"\xe9t\xe9"), "w"):
            pass
        monkeypatch.chdir(ls_env.root)
        status, out, err = run_main(monkeypatch, capsysbinary, [])
        assert status == 0
        assert out == b"a\nz\n\xe9t\xe9\n"
        assert err == b""
