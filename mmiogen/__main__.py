#!/usr/bin/env python3
"""
Generate register access code from a hardware description.

Usage: mmiogen <input> --dir <output_dir> [--target cpp|python|yaml ...]
               [--format svd|json] [--config <file>] [--periph-dir <dir>]
               [--strict] [--no-split] [--quiet]

The input is either a SVD file or a JSON register description. Unsupported
constructs are skipped with a warning unless --strict is given.
"""

import argparse
import sys
from pathlib import Path

from . import rdljson, svd
from .config import TARGETS, ConfigError, load_config
from .generators import cxx, model, python
from .mmio import SchemaError

GENERATORS = {
    'cpp': lambda platform, args, header: cxx.generate(platform, args.dir, args.periph_dir, header),
    'python': lambda platform, args, header: python.generate(platform, args.dir, header),
    'yaml': lambda platform, args, header: model.generate(platform, args.dir, header),
}


def input_format(path:Path, fmt:str=None) -> str:
    """ The schema of the input, from --format or else from the file extension. """
    if fmt:
        return fmt
    return 'json' if path.suffix.lower() == '.json' else 'svd'


def convert(path:Path, fmt:str, config:dict):
    """ Read the input and convert it into a Conversion (platform and warnings). """
    options = { 'strict': config['strict'], 'types': config['types'], 'skip': config['skip'] }
    if fmt == 'json':
        return rdljson.to_platform(rdljson.load(path), split_interfaces=config['split_interfaces'], **options)
    return svd.load(path, **options)


def build_parser():
    parser = argparse.ArgumentParser(prog='mmiogen',
        description='Generate register access code from SVD or JSON register descriptions.')
    parser.add_argument('input', type=Path, help='SVD or JSON file describing the platform')
    parser.add_argument('-d', '--dir', type=Path, required=True,
                        help='Output directory for the generated code')
    parser.add_argument('-p', '--periph-dir', type=Path,
                        help='Output directory for the C++ header with the device addresses (default: --dir)')
    parser.add_argument('-t', '--target', action='append', choices=TARGETS,
                        help='Code to generate, may be repeated (default: from config, else cpp)')
    parser.add_argument('-f', '--format', choices=('svd', 'json'),
                        help='Input format (default: from the file extension)')
    parser.add_argument('-c', '--config', type=Path, help='YAML configuration file')
    parser.add_argument('--strict', action='store_true',
                        help='Fail on unsupported constructs instead of skipping them')
    parser.add_argument('--no-split', action='store_true',
                        help='Keep devices with several identical interfaces as one device (JSON input)')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only print warnings and errors')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    say = (lambda *a: None) if args.quiet else print

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.strict:
        config['strict'] = True
    if args.no_split:
        config['split_interfaces'] = False
    targets = args.target or config['targets']

    if not args.input.is_file():
        print(f"Error: {args.input} not found", file=sys.stderr)
        sys.exit(1)
    fmt = input_format(args.input, args.format)

    say(f"Loading {args.input} ({fmt})...")
    try:
        platform, warnings = convert(args.input, fmt, config)
    except (SchemaError, OSError) as e:
        print(f"Error: {args.input}: {e}", file=sys.stderr)
        sys.exit(1)

    for w in warnings:
        print(f"Warning: {w}", file=sys.stderr)
    say(f"  Found {sum(len(v) for v in platform.device_types.values())} device instances, "
        f"{len(platform.devices)} device types with registers, {len(platform.interrupts)} interrupts")

    try:
        for target in targets:
            for path in GENERATORS[target](platform, args, config['file_header']):
                say(f"{path} generated")
    except (SchemaError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    return 0


if __name__ == '__main__':
    sys.exit(main())
