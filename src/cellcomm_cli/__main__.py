import sys
import argparse
import logging

from pydantic import ValidationError

from cellcomm.exceptions import CellCommError

from cellcomm_cli.config import ClientSettings, ServerSettings
from cellcomm_cli.client_app import CellCommClient
from cellcomm_cli.server_app import CellCommServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cellcomm", description="Cell exchange harness")
    sub = parser.add_subparsers(dest="mode", required=True)

    sp = sub.add_parser("server", help="Accept clients and answer their cells")
    sp.add_argument("--host", help="Address to bind")
    sp.add_argument("-p", "--port", type=int, help="Port to listen on")
    sp.add_argument("-o", "--output-dir", help="Directory for the main log and session traces")
    sp.add_argument("--log-level", dest="logging_level", help="Logging level")

    cp = sub.add_parser("client", help="Exchange cells with a server for a while")
    cp.add_argument("server_host", metavar="hostname", help="Server address")
    cp.add_argument("server_port", metavar="port", type=int, help="Server port")
    cp.add_argument("duration", type=int, help="Communication duration in seconds (at most one day)")
    cp.add_argument("log_file", metavar="file-name", help="Log file to write")
    cp.add_argument("--proxy", dest="use_proxy", action="store_true", default=None,
                    help="Connect through the local SOCKS proxy")
    cp.add_argument("--proxy-host", help="SOCKS proxy address")
    cp.add_argument("--proxy-port", type=int, help="SOCKS proxy port")
    cp.add_argument("--connect-timeout", type=float, help="Connect timeout in seconds")
    cp.add_argument("--log-level", dest="logging_level", help="Logging level")

    return parser


def _overrides(args: argparse.Namespace) -> dict:
    """Command line values that were actually given."""
    return {
        key: value
        for key, value in vars(args).items()
        if key != "mode" and value is not None
    }


def starter(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.mode == "server":
            settings = ServerSettings(**_overrides(args))
        else:
            settings = ClientSettings(**_overrides(args))
    except ValidationError as e:
        print(f"Invalid argument: {e}", file=sys.stderr)
        return 2

    if args.mode == "server":
        CellCommServer(settings).run()
        return 0

    try:
        CellCommClient(settings).run()
    except CellCommError as e:
        logging.getLogger("cellcomm-client").error(str(e))
        return 1

    return 0


def main() -> None:
    sys.exit(starter())


if __name__ == "__main__":
    main()
