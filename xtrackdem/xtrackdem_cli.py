# Copyright (c) 2024 xTrackDEM developers
#
# This file is part of the xTrackDEM project.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
#
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

""" CLI configuration for xTrackDEM"""
import argparse
import logging
import sys
from argparse import ArgumentParser

import argcomplete

import xtrackdem


def get_parser() -> ArgumentParser:
    """
    ArgumentParser for xtrackdem

    :return: parser
    """
    parser = argparse.ArgumentParser(prog="xtrackdem", description="xTrackDEM command-line interface")

    parser.add_argument(
        "--loglevel",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help="Logger level (default: INFO. Should be one of (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {xtrackdem.__version__}",
    )

    subparsers = parser.add_subparsers(title="Subcommands", dest="command")

    # Subcommand for calibration
    calibrate_parser = subparsers.add_parser(
        "calibrate", help="Calibrate the horizontal offset of an altimetry track against a reference DTM"
    )
    calibrate_parser.add_argument("config", help="path to a YAML configuration file")

    return parser


def main() -> None:
    """
    Call xTrackDEM's main
    """
    parser = get_parser()
    argcomplete.autocomplete(parser)
    args = parser.parse_args()

    # Show help if no subcommand is provided
    if not args.command:
        parser.print_help()
        return

    # Set the logging configuration
    logging.basicConfig(level=args.loglevel)

    # Handle calibrate subcommand
    if args.command == "calibrate":
        try:
            xtrackdem.calibrate(args.config)
        except (FileNotFoundError, ValueError) as e:
            logging.error(f"Error: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
