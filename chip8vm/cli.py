#!/usr/bin/env python3
"""
chip8vm command line

    chip8vm run ROM         open an interactive window
    chip8vm headless ROM    run a fixed number of cycles, print the screen
"""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from .errors import Chip8Error, ExecutionError
from .interpreter import Chip8Interpreter
from .quirks import QuirkProfile, PROFILES
from .rom import load_rom_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chip8vm", description="CHIP-8 virtual machine")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("rom", type=str, help="Path to a .ch8 ROM file")
    common.add_argument("--profile", type=str, default="chip8", choices=sorted(PROFILES),
                        help="Quirk profile")
    common.add_argument("--scale", type=int, default=8, help="Pixel scale factor")
    common.add_argument("--ipf", type=int, default=10,
                        help="Instructions per 60Hz frame")
    common.add_argument("--debug-file", type=str, help="Write an instruction trace to this file")

    subparsers.add_parser("run", parents=[common], help="Run a ROM in a window")

    headless = subparsers.add_parser("headless", parents=[common], help="Run a ROM without a window")
    headless.add_argument("--cycles", type=int, default=5000, help="Number of steps to run")
    headless.add_argument("--png", type=str, help="Save the final screen as a PNG")
    headless.add_argument("--seed", type=int, help="Seed for the random number source")
    headless.add_argument("--stats", action="store_true", help="Print instrumentation counters")

    return parser


def create_interpreter(args) -> Chip8Interpreter:
    rng = np.random.default_rng(getattr(args, 'seed', None))
    interpreter = Chip8Interpreter(quirks=QuirkProfile.named(args.profile), rng=rng,
                                   debug_file=args.debug_file)
    try:
        interpreter.load_program(load_rom_file(args.rom))
    except (OSError, Chip8Error):
        interpreter.close()
        raise
    return interpreter


def run_headless(args) -> int:
    interpreter = create_interpreter(args)
    try:
        interpreter.run(max_cycles=args.cycles, timer_interval=args.ipf)
    except ExecutionError:
        # Show where the ROM stopped, then let the fault propagate
        print(interpreter.display.to_text())
        raise
    finally:
        interpreter.close()

    print(interpreter.display.to_text())
    if args.stats:
        print(interpreter.format_stats())
    if args.png:
        print(f"Saved display to {interpreter.display.save_png(args.png, scale=args.scale)}")
    return 0


def run_window(args) -> int:
    # Imported here so headless use works without a Tk installation
    from .host import TkHost

    interpreter = create_interpreter(args)
    try:
        TkHost(interpreter, scale=args.scale, instructions_per_frame=args.ipf,
               title=f"CHIP-8: {Path(args.rom).name}").run()
    finally:
        interpreter.close()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "headless":
            return run_headless(args)
        return run_window(args)
    except FileNotFoundError:
        print(f"ROM file not found: {args.rom}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Chip8Error as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
