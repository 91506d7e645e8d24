#!/usr/bin/env python3
"""
Name: cl
Description: filter data by columns on the command line
License: artistic2
"""

import sys
import os
import argparse
import re
from collections import namedtuple

# Constants
EX_SUCCESS = 0
EX_FAILURE = 1
VERSION = '1.0'

FIELD_SEPARATOR = '\t'

# Column numbers are 64-bit signed integers.
MIN_COLUMN_VALUE = -2**63
MAX_COLUMN_VALUE = 2**63 - 1

# Whitespace, less the ASCII information separators (\x1c-\x1f) that
# str.split() would also break on.
WHITESPACE = re.compile(r'[^\S\x1c-\x1f]+')

Config = namedtuple('Config', ['columns', 'separator', 'skip_header'])


class ColumnFilterError(ValueError):
    """Base class for every error that aborts a run."""


class ArgumentParseError(ColumnFilterError):
    def __init__(self, token, reason=None):
        self.token = token
        if reason is None:
            reason = f"invalid literal for int() with base 10: '{token}'"
        self.reason = reason
        super().__init__(f"failed to parse argument '{token}': {reason}")


class InvalidColumnError(ColumnFilterError):
    def __init__(self, column):
        self.column = column
        super().__init__(
            f"argument '{column}' is invalid, column indexes must be positive numbers"
        )


class MissingColumnsError(ColumnFilterError):
    def __init__(self):
        super().__init__("at least one column is required")


class ConflictingSeparatorError(ColumnFilterError):
    def __init__(self):
        super().__init__("you cannot use both -s and -t")


class SeparatorCompileError(ColumnFilterError):
    def __init__(self, separator, reason):
        self.separator = separator
        self.reason = reason
        super().__init__(
            f"could not parse separator '{separator}' as a regular expression: {reason}"
        )


class InputReadError(ColumnFilterError):
    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"failed to read input: {cause}")


def parse_columns(tokens) -> frozenset:
    """
    Turns the positional arguments into the set of 1-based columns to print.
    Stops at the first token that is not a positive base-10 integer.
    """
    columns = set()
    for token in tokens:
        if not re.fullmatch(r'[+-]?[0-9]+', token):
            raise ArgumentParseError(token)
        column = int(token)
        if not MIN_COLUMN_VALUE <= column <= MAX_COLUMN_VALUE:
            raise ArgumentParseError(token, "value out of range")
        if column < 1:
            raise InvalidColumnError(column)
        columns.add(column)

    if not columns:
        raise MissingColumnsError()
    return frozenset(columns)


def resolve_separator(separator: str, use_tab: bool):
    """
    Works out how lines are split. Returns a compiled pattern, or None when
    lines should be split on runs of whitespace.
    """
    if separator and use_tab:
        raise ConflictingSeparatorError()

    if use_tab:
        separator = '\t'

    if not separator:
        return None

    try:
        return re.compile(separator)
    except re.error as e:
        raise SeparatorCompileError(separator, e) from e


def regex_split(pattern, line: str) -> list:
    """
    Splits a line on every match of pattern. Unlike re.split(), groups in
    the pattern are never returned as fields, a zero-width match at the start
    of the line does not create a leading empty field, and an empty match
    right after another match is skipped.
    """
    if not line:
        return ['']

    fields = []
    start = end = 0
    last_match_end = None
    for match in pattern.finditer(line):
        if match.start() == match.end() == last_match_end:
            continue
        end = match.start()
        if match.end() != 0:
            fields.append(line[start:end])
        start = last_match_end = match.end()

    if end != len(line):
        fields.append(line[start:])
    return fields


def split_line(line: str, separator) -> list:
    if separator is None:
        return [field for field in WHITESPACE.split(line) if field]
    return regex_split(separator, line)


def select_fields(fields: list, columns) -> list:
    # Output follows input order, whatever order the columns were given in.
    return [field for i, field in enumerate(fields, 1) if i in columns]


def strip_line_ending(line: str) -> str:
    if line.endswith('\n'):
        line = line[:-1]
    if line.endswith('\r'):
        line = line[:-1]
    return line


def filter_lines(config: Config, stdin, stdout):
    """Reads stdin line by line and writes the selected columns to stdout."""
    first_line = True
    try:
        for line in stdin:
            if first_line:
                first_line = False
                if config.skip_header:
                    continue

            fields = split_line(strip_line_ending(line), config.separator)
            # Each output line is a single write.
            stdout.write(FIELD_SEPARATOR.join(select_fields(fields, config.columns)) + '\n')
    except (OSError, UnicodeDecodeError) as e:
        raise InputReadError(e) from e


class ArgumentParser(argparse.ArgumentParser):
    """
    An ArgumentParser that prints help, usage and errors to the streams it
    was given rather than to sys.stdout and sys.stderr.
    """
    def __init__(self, stdout, stderr, **kwargs):
        super().__init__(**kwargs)
        self.stdout = stdout
        self.stderr = stderr

    def print_help(self, file=None):
        super().print_help(file or self.stdout)

    def print_usage(self, file=None):
        super().print_usage(file or self.stdout)

    def exit(self, status=0, message=None):
        if message:
            self.stderr.write(message)
        sys.exit(status)

    def error(self, message):
        self.print_usage(self.stderr)
        self.exit(EX_FAILURE, f"{self.prog}: ERROR: {message}\n")


def preprocess_argv(args_list: list) -> list:
    """
    Attaches a separator that starts with '-' to its option, so '-s -+'
    becomes '-s-+'. argparse would otherwise read it as an option.
    """
    processed_args = []
    i = 0
    while i < len(args_list):
        arg = args_list[i]
        if arg == '--':
            processed_args.extend(args_list[i:])
            break
        # '-s=x' would lose its '=', so only dash values are attached.
        if arg == '-s' and i + 1 < len(args_list) and args_list[i + 1].startswith('-'):
            processed_args.append(arg + args_list[i + 1])
            i += 2
            continue
        processed_args.append(arg)
        i += 1
    return processed_args


def build_parser(prog: str, stdout, stderr) -> ArgumentParser:
    parser = ArgumentParser(
        stdout, stderr,
        prog=prog,
        description="Filter data by columns on the command line. Columns are "
                    "numbered from 1 and printed in input order, separated by tabs.",
        usage="%(prog)s [-h] [--version] [-i] [-s separator | -t] column [column ...]"
    )
    parser.add_argument('--version', action='store_true',
                        help="show program's version number and exit")
    parser.add_argument('-i', dest='skip_header', action='store_true',
                        help='ignore the first line of input (header)')
    parser.add_argument('-s', dest='separator', default='',
                        help='a character or regex to split lines (default: whitespace)')
    parser.add_argument('-t', dest='use_tab', action='store_true',
                        help='use tabs as separator (alias of -s \\t)')
    parser.add_argument('columns', nargs='*', metavar='column',
                        help='a column to print, counting from 1')
    return parser


def parse_config(args) -> Config:
    columns = parse_columns(args.columns)
    separator = resolve_separator(args.separator, args.use_tab)
    return Config(columns=columns, separator=separator, skip_header=args.skip_header)


def run(argv, stdin, stdout, stderr, prog='cl') -> int:
    """Runs the command against the given streams and returns an exit status."""
    parser = build_parser(prog, stdout, stderr)

    try:
        args = parser.parse_intermixed_args(preprocess_argv(argv))
    except SystemExit as e:
        # argparse exits after --help and usage errors.
        return EX_SUCCESS if not e.code else EX_FAILURE

    if args.version:
        print(f"{prog} {VERSION}", file=stdout)
        return EX_SUCCESS

    try:
        config = parse_config(args)
        filter_lines(config, stdin, stdout)
    except MissingColumnsError:
        parser.print_help()
        return EX_FAILURE
    except ColumnFilterError as e:
        print(f"{prog}: ERROR: {e}", file=stderr)
        return EX_FAILURE

    return EX_SUCCESS


def main():
    """Binds the process streams and exits with the status of the run."""
    program_name = os.path.basename(sys.argv[0])

    # Pass undecodable bytes through untouched.
    sys.stdin.reconfigure(errors='surrogateescape')
    sys.stdout.reconfigure(errors='surrogateescape')

    sys.exit(run(sys.argv[1:], sys.stdin, sys.stdout, sys.stderr, prog=program_name))


if __name__ == "__main__":
    main()
