"""
HybridVault - Main Entry Point

Wires the components together once and exposes a small command line for
operating the receiving side:

    hybridvault bundle                       print the key exchange bundle
    hybridvault package FILE --bundle B.json build an external upload payload
    hybridvault receive PAYLOAD.json         verify, decrypt and store a payload
    hybridvault list [--owner P]             list artifacts
    hybridvault verify ID                    re-verify a stored artifact
    hybridvault rotate-keys                  replace the RSA pair and transport key
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .api.handlers import TransferGateway
from .auth.principal import Principal, ROLE_ADMIN
from .config import VaultConfig, load_config, configure_logging
from .files.file_store import FileStore
from .integration.event_logger import EventLogger
from .keys.key_store import KeyStore
from .ledger.integrity_ledger import IntegrityLedger
from .transfer.errors import TransferError
from .transfer.sender import payload_from_file
from .transfer.service import TransferService


logger = logging.getLogger(__name__)

CLI_PRINCIPAL = Principal('cli-admin', ROLE_ADMIN)


@dataclass
class Services:
    """Components constructed once per process."""
    config: VaultConfig
    key_store: KeyStore
    ledger: IntegrityLedger
    file_store: FileStore
    event_logger: EventLogger
    transfer: TransferService
    gateway: TransferGateway


def build_services(config: Optional[VaultConfig] = None) -> Services:
    """Construct every component and inject its dependencies."""
    config = config or load_config()

    key_store = KeyStore(config.keys_dir)
    ledger = IntegrityLedger(config.ledger_path)
    file_store = FileStore(config.files_dir)
    event_logger = EventLogger(max_entries=config.audit_max_entries)

    transfer = TransferService(
        ledger, file_store, key_store,
        event_logger=event_logger,
        uploads_principal=config.uploads_principal,
        external_source=config.external_source,
    )
    gateway = TransferGateway(transfer, key_store,
                              max_payload_bytes=config.max_payload_bytes)

    return Services(config, key_store, ledger, file_store, event_logger, transfer, gateway)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='hybridvault',
        description='Hybrid-encryption file exchange (AES-256-CBC + RSA-OAEP + HMAC-SHA256)',
    )
    parser.add_argument('--config', type=Path, help='JSON config file')
    parser.add_argument('--log-level', help='Override the configured log level')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser('bundle', help='Print the key exchange bundle')

    package_parser = subparsers.add_parser('package', help='Build an external upload payload')
    package_parser.add_argument('input', help='File to send')
    package_parser.add_argument('--bundle', required=True, type=Path,
                                help='Key exchange bundle (JSON)')
    package_parser.add_argument('--sender', help='Sender identification')
    package_parser.add_argument('-o', '--output', type=Path, help='Output payload path')

    receive_parser = subparsers.add_parser('receive', help='Receive an external upload payload')
    receive_parser.add_argument('payload', type=Path, help='Payload JSON file')

    list_parser = subparsers.add_parser('list', help='List stored artifacts')
    list_parser.add_argument('--owner', help='Only artifacts owned by this principal')

    verify_parser = subparsers.add_parser('verify', help='Re-verify a stored artifact')
    verify_parser.add_argument('artifact_id')

    subparsers.add_parser('rotate-keys', help='Replace the key pair and transport MAC key')

    return parser


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for HybridVault."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = load_config(args.config)
    configure_logging(args.log_level or config.log_level)

    if args.command == 'package':
        bundle = json.loads(args.bundle.read_text())
        payload = payload_from_file(args.input, bundle, args.sender)
        if args.output:
            args.output.write_text(json.dumps(payload))
            print(f"Payload written to {args.output}")
        else:
            _print_json(payload)
        return 0

    services = build_services(config)

    if args.command == 'bundle':
        response = services.gateway.public_key()
        _print_json(response.body)
        return 0 if response.ok else 1

    if args.command == 'receive':
        body = json.loads(args.payload.read_text())
        response = services.gateway.external_upload(body)
        _print_json(response.body)
        return 0 if response.ok else 1

    if args.command == 'list':
        if args.owner:
            files = services.transfer.list_for(args.owner)
        else:
            files = services.transfer.list_all(CLI_PRINCIPAL)
        _print_json(files)
        return 0

    if args.command == 'verify':
        try:
            report = services.transfer.check_integrity(args.artifact_id)
        except TransferError as e:
            print(f"Error: {e.kind}", file=sys.stderr)
            return 1
        _print_json({'id': report.artifact_id, 'valid': report.valid,
                     'message': report.message})
        return 0 if report.valid else 2

    if args.command == 'rotate-keys':
        services.key_store.rotate()
        print(f"Keys rotated in {services.config.keys_dir}")
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
