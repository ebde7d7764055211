"""Command line entry point (``disk-layout``)."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable, Optional, Sequence

from disklayout.__version__ import __version__
from disklayout.actions.install import install_system
from disklayout.actions.keyfile import DEFAULT_KEY_SIZE, write_key_file
from disklayout.actions.secrets import install_key_file
from disklayout.config import settings
from disklayout.logging import LoggerFactory, setup_logging
from disklayout.storage.exceptions import StorageError
from disklayout.storage.layout import Layout, parse_device_mapping


log = LoggerFactory.for_system()


def _load_layout(path: str) -> Layout:
    layout = Layout.load(path)
    layout.validate()
    return layout


def cmd_validate(args: argparse.Namespace) -> None:
    _load_layout(args.layout)
    log.info(f"`{args.layout}` is a valid layout")


def cmd_partitioning(args: argparse.Namespace) -> None:
    layout = Layout.load(args.layout)
    layout.set_device_mapping(parse_device_mapping(args.device or []))
    layout.validate()
    key_file = args.key_file or settings.get_setting("key_file")
    layout.create(key_file, args.password)
    layout.close()
    layout.save(args.output)


def cmd_open(args: argparse.Namespace) -> None:
    _load_layout(args.layout).open(args.password)


def cmd_close(args: argparse.Namespace) -> None:
    layout = _load_layout(args.layout)
    layout.refresh_state()
    layout.close()


def cmd_install(args: argparse.Namespace) -> None:
    install_system(_load_layout(args.layout), args.password, args.repository, args.host)


def cmd_secrets(args: argparse.Namespace) -> None:
    install_key_file(
        _load_layout(args.layout),
        args.password,
        args.key_file,
        args.key_filename,
    )


def cmd_keyfile(args: argparse.Namespace) -> None:
    write_key_file(args.password, args.salt, args.iterations, args.key_size, args.output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="disk-layout",
        description="Create, open and close declarative disk layouts",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--trace", action="store_true", help="Log external command output")
    parser.add_argument("--settings", help="Path of the JSON settings file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add(name: str, handler: Callable[[argparse.Namespace], None], help_text: str):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--layout", required=True, help="Layout JSON file")
        sub.set_defaults(handler=handler)
        return sub

    add("validate", cmd_validate, "Check a layout file")

    sub = add("partitioning", cmd_partitioning, "Wipe disks and create the layout")
    sub.add_argument("--output", required=True, help="Where to write the resolved layout")
    sub.add_argument("--password", required=True, help="Encryption passphrase")
    sub.add_argument("--key-file", help="Key file added to encrypted partitions")
    sub.add_argument(
        "--device",
        action="append",
        metavar="NAME=DEVICE",
        help="Map a #NAME disk placeholder to a device (repeatable)",
    )

    sub = add("open", cmd_open, "Open every encrypted partition, volume group and pool")
    sub.add_argument("--password", help="Encryption passphrase")

    add("close", cmd_close, "Close the layout")

    sub = add("install", cmd_install, "Install NixOS on the layout")
    sub.add_argument("--password", help="Encryption passphrase")
    sub.add_argument("--repository", required=True, help="NixOS configuration path or URL")
    sub.add_argument("--host", required=True, help="Host name (hosts/<host>.nix)")

    sub = add("secrets", cmd_secrets, "Install the disk key file into root")
    sub.add_argument("--password", help="Encryption passphrase")
    sub.add_argument("--key-file", help="Key file to install")
    sub.add_argument("--key-filename", help="Name of the installed key file")

    sub = subparsers.add_parser("keyfile", help="Derive a key file from a passphrase")
    sub.add_argument("--password", required=True, help="Passphrase to derive the key from")
    sub.add_argument("--salt", required=True, help="File containing the salt data")
    sub.add_argument("--iterations", type=int, required=True, help="Argon2 time cost")
    sub.add_argument(
        "--key-size", type=int, default=DEFAULT_KEY_SIZE, help="Size of the key in bytes"
    )
    sub.add_argument("--output", help="Key file to write (default: the key_file setting)")
    sub.set_defaults(handler=cmd_keyfile)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug, trace=args.trace)
    if args.settings:
        settings.load_settings(Path(args.settings))

    try:
        args.handler(args)
    except StorageError as error:
        log.error(error.describe())
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
