"""Run palmchord from the command line: ``python -m palmchord.main --help``"""

import argh
from palmchord.script_utils import palmchord_cli


def dispatched_palmchord_cli():
    argh.dispatch_command(palmchord_cli)


if __name__ == "__main__":
    dispatched_palmchord_cli()
