# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Command-line interface for ls-python.

This module contains the CLI functions including argument parsing,
environment handling, and the main entry point.
"""

from __future__ import annotations

import locale
import os
import sys
import traceback
from typing import Optional, Sequence

from ls_python.ls import DirectoryWalker
from ls_python.render import StreamRenderer
from ls_python.session import ListingSession
from ls_python.signals import SignalAdapter
from ls_python.types import (
    Dereference,
    Format,
    IgnoreMode,
    ListingConfig,
    LsCLIError,
    LsError,
    LsProgrammingError,
    Severity,
    SortKey,
    TimeType,
)
from ls_python.util import PROGRAM_NAME, VERSION, set_debug_level

SORT_WORDS = {
    "none": SortKey.NONE,
    "size": SortKey.SIZE,
    "time": None,  # resolved against --time at the end
    "version": SortKey.VERSION,
    "extension": SortKey.EXTENSION,
    "name": SortKey.NAME,
    "width": SortKey.WIDTH,
}

TIME_WORDS = {
    "atime": TimeType.ATIME,
    "access": TimeType.ATIME,
    "use": TimeType.ATIME,
    "ctime": TimeType.CTIME,
    "status": TimeType.CTIME,
    "mtime": TimeType.MTIME,
    "modification": TimeType.MTIME,
    "birth": TimeType.BTIME,
    "creation": TimeType.BTIME,
}

FORMAT_WORDS = {
    "verbose": Format.LONG,
    "long": Format.LONG,
    "commas": Format.WITH_COMMAS,
    "horizontal": Format.HORIZONTAL,
    "across": Format.HORIZONTAL,
    "vertical": Format.MANY_PER_LINE,
    "single-column": Format.ONE_PER_LINE,
}

# Long options that take an argument
_VALUE_OPTIONS = ("ignore", "hide", "width", "tabsize", "sort", "time", "format")

# Long options without an argument, mapped to their short equivalent
_FLAG_OPTIONS = {
    "all": "a",
    "almost-all": "A",
    "ignore-backups": "B",
    "directory": "d",
    "dereference-command-line": "H",
    "inode": "i",
    "dereference": "L",
    "hide-control-chars": "q",
    "reverse": "r",
    "recursive": "R",
}


def main() -> None:
    """Main entry point for ls command."""
    try:
        status = _main(sys.argv[1:])
    except LsProgrammingError as e:
        print(
            f"\n{PROGRAM_NAME}: INTERNAL ERROR: {e.message}\n{traceback.format_exc()}",
            file=sys.stderr,
        )
        print(
            "This _is_ a bug. Please submit a bug report so we can fix it! :-)",
            file=sys.stderr,
        )
        sys.exit(e.errno)
    except LsCLIError as e:
        print(e.message, file=sys.stderr)
        sys.exit(e.errno)
    except LsError as e:
        print(f"{PROGRAM_NAME}: {e.message}", file=sys.stderr)
        sys.exit(e.errno)
    except BrokenPipeError:
        # Python flushes stdout again at exit; point it at /dev/null first
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        sys.exit(Severity.SERIOUS)
    sys.exit(status)


def _main(args: Sequence[str]) -> int:
    """Main implementation (can raise LsError). Returns the exit status."""
    try:
        locale.setlocale(locale.LC_ALL, "")
    except locale.Error:
        pass

    options, paths = parse_cli_options(args)
    if options.get("help"):
        show_usage()
        return Severity.SUCCESS
    if options.get("version"):
        show_version()
        return Severity.SUCCESS

    config = build_config(options, stdout_isatty())
    set_debug_level(config.verbose)

    session = ListingSession(config)
    renderer = StreamRenderer(session)
    session.restore_output = renderer.flush
    walker = DirectoryWalker(session, renderer)

    with SignalAdapter(session.token):
        severity = walker.list([os.fsencode(p) for p in paths])
    return int(severity)


# =============================================================================
# Option parsing
# =============================================================================


def _usage_error(msg: str) -> LsCLIError:
    return LsCLIError(
        f"{PROGRAM_NAME}: {msg}\nTry '{PROGRAM_NAME} --help' for more information.",
        Severity.SERIOUS,
    )


def _parse_bundled_options(chars: str, next_arg: Optional[str], options: dict) -> bool:
    """Parse bundled short options like -lRt.

    An option taking a value uses the rest of the bundle, or NEXT_ARG
    when the bundle ends with it.

    Returns True if NEXT_ARG was consumed.
    """
    i = 0
    while i < len(chars):
        char = chars[i]
        rest = chars[i + 1:]

        match char:
            case "a":
                options["ignore_mode"] = IgnoreMode.MINIMAL
            case "A":
                options["ignore_mode"] = IgnoreMode.DOT_AND_DOTDOT
            case "B":
                options.setdefault("ignore", []).extend(["*~", ".*~"])
            case "C":
                options["format"] = Format.MANY_PER_LINE
            case "d":
                options["immediate_dirs"] = True
            case "f":
                options["ignore_mode"] = IgnoreMode.MINIMAL
                options["sort"] = SortKey.NONE
            case "H":
                options["dereference"] = Dereference.COMMAND_LINE_ARGUMENTS
            case "i":
                options["print_inode"] = True
            case "l":
                options["format"] = Format.LONG
            case "L":
                options["dereference"] = Dereference.ALWAYS
            case "m":
                options["format"] = Format.WITH_COMMAS
            case "q":
                options["hide_control_chars"] = True
            case "r":
                options["reverse"] = True
            case "R":
                options["recursive"] = True
            case "S":
                options["sort"] = SortKey.SIZE
            case "t":
                options["sort"] = None
            case "U":
                options["sort"] = SortKey.NONE
            case "v":
                options["sort"] = SortKey.VERSION
            case "x":
                options["format"] = Format.HORIZONTAL
            case "X":
                options["sort"] = SortKey.EXTENSION
            case "1":
                if options.get("format") is not Format.LONG:
                    options["format"] = Format.ONE_PER_LINE
            case "c":
                options["time"] = TimeType.CTIME
            case "u":
                options["time"] = TimeType.ATIME
            case "I" | "T" | "w":
                if rest:
                    value = rest
                elif next_arg is not None:
                    value = next_arg
                else:
                    raise _usage_error(f"option requires an argument -- '{char}'")
                match char:
                    case "I":
                        options.setdefault("ignore", []).append(value)
                    case "T":
                        options["tabsize"] = value
                    case "w":
                        options["width"] = value
                return not rest
            case _:
                raise _usage_error(f"invalid option -- '{char}'")
        i += 1
    return False


def _apply_long_option(name: str, value: str, options: dict) -> None:
    match name:
        case "ignore" | "hide":
            options.setdefault(name, []).append(value)
        case "width" | "tabsize":
            options[name] = value
        case "sort":
            if value not in SORT_WORDS:
                raise _usage_error(f"invalid argument '{value}' for '--sort'")
            options["sort"] = SORT_WORDS[value]
        case "time":
            if value not in TIME_WORDS:
                raise _usage_error(f"invalid argument '{value}' for '--time'")
            options["time"] = TIME_WORDS[value]
        case "format":
            if value not in FORMAT_WORDS:
                raise _usage_error(f"invalid argument '{value}' for '--format'")
            options["format"] = FORMAT_WORDS[value]


def parse_cli_options(args: Sequence[str]) -> tuple[dict, list[str]]:
    """Parse command line options.

    Options and file names may be interleaved; '--' ends option parsing.

    Returns: (options, paths)
    """
    options: dict = {}
    paths: list[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        next_arg = args[i + 1] if i + 1 < len(args) else None

        if arg == "--":
            paths.extend(args[i + 1:])
            break
        elif arg == "-" or not arg.startswith("-"):
            paths.append(arg)

        elif arg.startswith("--"):
            name, has_value, value = arg[2:].partition("=")
            if name in _VALUE_OPTIONS:
                if not has_value:
                    if next_arg is None:
                        raise _usage_error(f"option '--{name}' requires an argument")
                    value = next_arg
                    i += 1
                _apply_long_option(name, value, options)
            elif has_value:
                raise _usage_error(f"unrecognized option '{arg}'")
            elif name in _FLAG_OPTIONS:
                _parse_bundled_options(_FLAG_OPTIONS[name], None, options)
            elif name == "group-directories-first":
                options["dirs_first"] = True
            elif name == "show-control-chars":
                options["hide_control_chars"] = False
            elif name == "help":
                options["help"] = True
            elif name == "version":
                options["version"] = True
            else:
                raise _usage_error(f"unrecognized option '{arg}'")

        else:
            if _parse_bundled_options(arg[1:], next_arg, options):
                i += 1

        i += 1

    return (options, paths)


# =============================================================================
# Configuration
# =============================================================================


def stdout_isatty() -> bool:
    try:
        return os.isatty(sys.stdout.fileno())
    except (AttributeError, OSError, ValueError):
        return False


def _parse_count(value: str) -> Optional[int]:
    """Parse a non-negative integer as ls does (decimal, 0x hex, 0 octal)."""
    try:
        number = int(value, 0)
    except ValueError:
        try:
            number = int(value, 10)
        except ValueError:
            return None
    return number if number >= 0 else None


def determine_line_width(options: dict, fmt: Format, isatty: bool) -> int:
    """Line width from -w, then the terminal, then COLUMNS, then 80."""
    if "width" in options:
        width = _parse_count(options["width"])
        if width is None:
            raise LsError(f"invalid line width: '{options['width']}'")
        return width
    if fmt not in (Format.MANY_PER_LINE, Format.HORIZONTAL, Format.WITH_COMMAS):
        return 80
    if isatty:
        try:
            columns = os.get_terminal_size(sys.stdout.fileno()).columns
        except OSError:
            columns = 0
        if columns > 0:
            return columns
    env_columns = os.environ.get("COLUMNS")
    if env_columns:
        width = _parse_count(env_columns)
        if width is not None:
            return width
        print(
            f"{PROGRAM_NAME}: ignoring invalid width in environment variable COLUMNS: '{env_columns}'",
            file=sys.stderr,
        )
    return 80


def determine_tabsize(options: dict) -> int:
    if "tabsize" in options:
        tabsize = _parse_count(options["tabsize"])
        if tabsize is None:
            raise LsError(f"invalid tab size: '{options['tabsize']}'")
        return tabsize
    env_tabsize = os.environ.get("TABSIZE")
    if env_tabsize is not None:
        tabsize = _parse_count(env_tabsize)
        if tabsize is not None:
            return tabsize
        print(
            f"{PROGRAM_NAME}: ignoring invalid tab size in environment variable TABSIZE: '{env_tabsize}'",
            file=sys.stderr,
        )
    return 8


def _debug_level_from_env() -> int:
    value = os.environ.get("LS_PYTHON_DEBUG", "")
    try:
        return max(0, int(value))
    except ValueError:
        return 0


def build_config(options: dict, isatty: bool) -> ListingConfig:
    """Turn parsed options and the environment into a ListingConfig."""
    fmt = options.get("format")
    if fmt is None:
        fmt = Format.MANY_PER_LINE if isatty else Format.ONE_PER_LINE

    time_type = options.get("time", TimeType.MTIME)
    if "sort" in options:
        sort_key = options["sort"]
        if sort_key is None:
            sort_key = time_type.sort_key
    elif "time" in options and fmt is not Format.LONG:
        # -c/-u without -l sort by that time
        sort_key = time_type.sort_key
    else:
        sort_key = SortKey.NAME

    return ListingConfig(
        recursive=options.get("recursive", False),
        immediate_dirs=options.get("immediate_dirs", False),
        dereference=options.get("dereference"),
        ignore_mode=options.get("ignore_mode", IgnoreMode.DEFAULT),
        ignore_patterns=tuple(options.get("ignore", [])),
        hide_patterns=tuple(options.get("hide", [])),
        sort_key=sort_key,
        reverse=options.get("reverse", False),
        dirs_first=options.get("dirs_first", False),
        format=fmt,
        line_width=determine_line_width(options, fmt, isatty),
        tabsize=determine_tabsize(options),
        print_inode=options.get("print_inode", False),
        hide_control_chars=options.get("hide_control_chars", isatty),
        time_type=time_type,
        verbose=_debug_level_from_env(),
    )


# =============================================================================
# Help
# =============================================================================


def show_usage() -> None:
    """Print program usage message."""
    print(f"""Usage: {PROGRAM_NAME} [OPTION]... [FILE]...
List information about the FILEs (the current directory by default).
Sort entries alphabetically if none of -cftuvSUX nor --sort is specified.

  -a, --all                  do not ignore entries starting with .
  -A, --almost-all           do not list implied . and ..
  -B, --ignore-backups       do not list implied entries ending with ~
  -c                         with -lt: sort by, and show, ctime;
                             with -l: show ctime and sort by name;
                             otherwise: sort by ctime, newest first
  -C                         list entries by columns
  -d, --directory            list directories themselves, not their contents
  -f                         same as -a -U
      --format=WORD          across -x, commas -m, horizontal -x, long -l,
                             single-column -1, verbose -l, vertical -C
      --group-directories-first
                             group directories before files
  -H, --dereference-command-line
                             follow symbolic links listed on the command line
      --hide=PATTERN         do not list implied entries matching shell PATTERN
                             (overridden by -a or -A)
  -i, --inode                print the index number of each file
  -I, --ignore=PATTERN       do not list implied entries matching shell PATTERN
  -l                         use a long listing format
  -L, --dereference          when showing file information for a symbolic
                             link, show information for the file the link
                             references rather than for the link itself
  -m                         fill width with a comma separated list of entries
  -q, --hide-control-chars   print ? instead of nongraphic characters
      --show-control-chars   show nongraphic characters as-is
  -r, --reverse              reverse order while sorting
  -R, --recursive            list subdirectories recursively
  -S                         sort by file size, largest first
      --sort=WORD            sort by WORD instead of name: none (-U), size (-S),
                             time (-t), version (-v), extension (-X), width
      --time=WORD            select which timestamp used to display or sort;
                             access time (-u): atime, access, use;
                             metadata change time (-c): ctime, status;
                             modified time (default): mtime, modification;
                             birth time: birth, creation
  -t                         sort by time, newest first; see --time
  -T, --tabsize=COLS         assume tab stops at each COLS instead of 8
  -u                         with -lt: sort by, and show, access time;
                             with -l: show access time and sort by name;
                             otherwise: sort by access time, newest first
  -U                         do not sort; list entries in directory order
  -v                         natural sort of (version) numbers within text
  -w, --width=COLS           set output width to COLS.  0 means no limit
  -x                         list entries by lines instead of by columns
  -X                         sort alphabetically by entry extension
  -1                         list one file per line
      --help                 display this help and exit
      --version              output version information and exit

Exit status:
 0  if OK,
 1  if minor problems (e.g., cannot access subdirectory),
 2  if serious trouble (e.g., cannot access command-line argument).

Ls-Python is a Python reimplementation of the GNU ls listing engine.""")


def show_version() -> None:
    """Print version."""
    print(f"{PROGRAM_NAME} (Ls-Python) {VERSION}")


if __name__ == "__main__":
    main()
