#!/usr/bin/env python
"""
Command-line interface for palmchord.

This script provides a CLI wrapper around the run_palmchord function, allowing the
main parameters to be controlled via command-line arguments.

Examples:
    # Play from the webcam, on the first MIDI output port
    python palmchord_cli.py

    # List MIDI output ports, then play on a specific one
    python palmchord_cli.py --list-ports
    python palmchord_cli.py --port "FluidSynth"

    # See what a hand sweeping across the tracking box would play, without MIDI
    python palmchord_cli.py --source sweep --dry-run --no-pointer --log-steps

    # Record a performance, then play it again
    python palmchord_cli.py --record take1.jsonl
    python palmchord_cli.py --source replay --replay-file take1.jsonl --no-pointer
"""

import argh
from palmchord.script_utils import palmchord_cli


if __name__ == "__main__":
    argh.dispatch_command(palmchord_cli)
