"""
Command-line interface for DocumentDB Python SDK
Sends a single operation through the gateway pipeline and prints the result
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

from . import __version__
from .config import ConnectionPolicy, ConsistencyLevel
from .exceptions import DocumentClientError, DocumentDBSDKError
from .http_clients import DocumentServiceRequest, GatewayProxy, OperationType

MASTER_KEY_ENV = "DOCUMENTDB_MASTER_KEY"

OPERATIONS = {
    'create': OperationType.CREATE,
    'read': OperationType.READ,
    'read-feed': OperationType.READ_FEED,
    'replace': OperationType.REPLACE,
    'delete': OperationType.DELETE,
    'execute': OperationType.EXECUTE,
    'query': OperationType.SQL_QUERY,
}

EXIT_OK = 0
EXIT_SERVICE_ERROR = 1
EXIT_LOCAL_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog='documentdb-gateway',
        description='Send a single operation to a DocumentDB gateway endpoint'
    )
    
    parser.add_argument(
        '--version',
        action='version',
        version=f'DocumentDB Python SDK {__version__}'
    )
    parser.add_argument('operation', choices=sorted(OPERATIONS), help='Operation to perform')
    parser.add_argument('--endpoint', required=True, help='Gateway URL, e.g. https://account.documents.azure.com:443/')
    parser.add_argument('--path', required=True, help='Resource path, e.g. /dbs/d1/colls/c1/docs')
    parser.add_argument('--resource-id', default='', help='Resource (or owner) id used for authorization')
    parser.add_argument('--resource-type', default='', help='Resource type used for authorization, e.g. docs')
    
    body_group = parser.add_mutually_exclusive_group()
    body_group.add_argument('--body', help='Request body')
    body_group.add_argument('--body-file', help='Read the request body from a file')
    
    auth_group = parser.add_mutually_exclusive_group()
    auth_group.add_argument('--master-key', help=f'Master key (defaults to ${MASTER_KEY_ENV})')
    auth_group.add_argument(
        '--resource-token',
        action='append',
        default=[],
        metavar='ID=TOKEN',
        help='Resource token for a resource id (repeatable)'
    )
    
    parser.add_argument(
        '--consistency-level',
        choices=[level.value for level in ConsistencyLevel],
        help='Consistency level header sent with the request'
    )
    parser.add_argument(
        '--header',
        action='append',
        default=[],
        metavar='NAME=VALUE',
        help='Extra request header (repeatable)'
    )
    parser.add_argument('--config', help='JSON file with connection policy settings')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    
    return parser


def _parse_pairs(pairs: List[str], what: str) -> Dict[str, str]:
    parsed = {}
    for pair in pairs:
        name, sep, value = pair.partition('=')
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Invalid {what} '{pair}', expected NAME=VALUE")
        parsed[name] = value
    return parsed


def _read_body(args) -> Optional[bytes]:
    if args.body is not None:
        return args.body.encode('utf-8')
    if args.body_file:
        with open(args.body_file, 'rb') as f:
            return f.read()
    return None


def build_proxy(args) -> GatewayProxy:
    """Build a gateway proxy from parsed arguments."""
    if args.config:
        policy = ConnectionPolicy.from_file(args.config)
    else:
        policy = ConnectionPolicy.from_env()
    
    resource_tokens = _parse_pairs(args.resource_token, 'resource token') or None
    master_key = args.master_key
    if master_key is None and resource_tokens is None:
        master_key = os.environ.get(MASTER_KEY_ENV)
    
    consistency_level = ConsistencyLevel(args.consistency_level) if args.consistency_level else None
    
    return GatewayProxy(
        args.endpoint,
        policy,
        consistency_level=consistency_level,
        master_key=master_key,
        resource_tokens=resource_tokens,
    )


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI
    
    Args:
        argv: Command line arguments (None to use sys.argv)
        
    Returns:
        int: 0 on success, 1 for a gateway error status, 2 for local failures
    """
    if argv is None:
        argv = sys.argv[1:]
    
    parser = create_parser()
    args = parser.parse_args(argv)
    
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    
    try:
        headers = _parse_pairs(args.header, 'header')
        request = DocumentServiceRequest(
            path=args.path,
            resource_id=args.resource_id,
            resource_type=args.resource_type,
            headers=headers,
            body=_read_body(args),
        )
        
        with build_proxy(args) as proxy:
            with proxy.perform(OPERATIONS[args.operation], request) as response:
                # undecodable bytes are shown as U+FFFD rather than aborting the run
                body = response.read().decode('utf-8', errors='replace')
            print(f"Status: {response.status_code}")
            if body:
                print(body)
        return EXIT_OK
    
    except DocumentClientError as e:
        print(f"Status: {e.status_code}", file=sys.stderr)
        if e.body:
            print(e.body, file=sys.stderr)
        return EXIT_SERVICE_ERROR
    except (DocumentDBSDKError, argparse.ArgumentTypeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOCAL_ERROR


if __name__ == '__main__':
    sys.exit(main())
