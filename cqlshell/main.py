import argparse
import logging
import os
from typing import List, Optional

from cqlshell import __version__
from cqlshell.cassandra_conn import KeyspaceSession
from cqlshell.errors import SessionConnectionError
from cqlshell.interactive import run_interactive
from cqlshell.output import OutputConfig, Printer
from cqlshell.script import run_script
from cqlshell.settings import ConnectionSettings

EXIT_CONNECTION_FAILED = 1
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def build_parser(defaults: ConnectionSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cqlshell",
        description="Interactive and scriptable shell for Cassandra.",
        usage="%(prog)s [options] [-f CQL_SCRIPT_FILE]",
    )
    parser.add_argument("-v", "--version", action="version", version=f"cqlshell {__version__}")
    parser.add_argument("--host", default=defaults.host, help="Cassandra host to connect to")
    parser.add_argument("--port", type=int, default=defaults.port, help="Cassandra native protocol port")
    parser.add_argument("-u", "--username", default=defaults.username, help="Authenticate as user")
    parser.add_argument("-p", "--password", default=defaults.password, help="Authenticate using password")
    parser.add_argument("-k", "--keyspace", default=defaults.keyspace, help="Default keyspace to connect to")
    parser.add_argument(
        "-f", "--file", dest="script_file",
        help="Execute file containing cql statements instead of having an interactive session",
    )
    parser.add_argument("--print-cql", action="store_true", help="Print statements that are executed from a file")
    parser.add_argument(
        "--print-confirmation", action="store_true",
        help="Print 'ok' on successfully executed cql statement from the file",
    )
    parser.add_argument("--fail-on-error", action="store_true", help="Stop execution if statement from file fails")
    parser.add_argument("--no-color", action="store_true", help="Console without colors")
    parser.add_argument("--connect-timeout", type=float, default=defaults.connect_timeout)
    parser.add_argument("--request-timeout", type=float, default=defaults.request_timeout)
    parser.add_argument("--protocol-version", type=int, default=defaults.protocol_version)
    parser.add_argument("--debug", action="store_true", help="Show debug logging, including the driver's")
    return parser


def configure_logging(debug: bool) -> None:
    if debug:
        level = "DEBUG"
    else:
        level = os.getenv("LOG_LEVEL", "WARNING").strip().upper()
        if level not in LOG_LEVELS:
            level = "WARNING"
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not debug:
        logging.getLogger("cassandra").setLevel(logging.ERROR)


def main(argv: Optional[List[str]] = None) -> int:
    defaults = ConnectionSettings.from_env()
    args = build_parser(defaults).parse_args(argv)
    configure_logging(args.debug)

    settings = defaults.model_copy(
        update={
            "host": args.host,
            "port": args.port,
            "username": args.username,
            "password": args.password,
            "keyspace": args.keyspace,
            "connect_timeout": args.connect_timeout,
            "request_timeout": args.request_timeout,
            "protocol_version": args.protocol_version,
        }
    )
    # script output is meant for files and pipes
    colors = not args.no_color and not args.script_file
    printer = Printer(config=OutputConfig(colors=colors))

    try:
        session = KeyspaceSession.open(settings)
    except SessionConnectionError as e:
        printer.error(e)
        return EXIT_CONNECTION_FAILED

    with session:
        if args.script_file:
            return run_script(
                args.script_file,
                session,
                printer,
                print_cql=args.print_cql,
                fail_on_error=args.fail_on_error,
                print_confirmation=args.print_confirmation,
            )
        run_interactive(session, printer)
    return 0
