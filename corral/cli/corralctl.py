#!/usr/bin/env python3
"""
corralctl - AppArmor profile management CLI for Corral

Drives the per-instance profile lifecycle by hand:
- Show the names derived for an instance
- Render its profile without touching the host
- Load, unload, parse or delete its profile
- Show detected host AppArmor capabilities

Usage:
    corralctl names --project default --name c1
    corralctl render --instance-file c1.yaml
    corralctl load --project web --name c1
    corralctl delete --project web --name c1
    corralctl host

Instance files are YAML:
    project: web
    name: c1
    config:
      security.nesting: "true"
      raw.apparmor: |
        /srv/** r,

Environment Variables:
    CORRAL_CONFIG  - Path to settings file (default: /etc/corral/corral.yaml if present)
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

import yaml

from corral.apparmor import (
    AppArmorError,
    AppArmorProfileManager,
    HostCapabilities,
    Instance,
    detect_host_capabilities,
)
from corral.config import ConfigError, CorralSettings, load_settings
from corral.constants import DEFAULT_PROJECT, Paths
from corral.logging_config import setup_logging


# ANSI color codes
class Colors:
    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[91m'
    GREEN = '\033[92m'
    CYAN = '\033[96m'

    @classmethod
    def disable(cls):
        """Disable colors for non-TTY output."""
        cls.RESET = ''
        cls.BOLD = ''
        cls.RED = ''
        cls.GREEN = ''
        cls.CYAN = ''


def print_error(msg: str) -> None:
    print(f"{Colors.RED}Error:{Colors.RESET} {msg}", file=sys.stderr)


def print_success(msg: str) -> None:
    print(f"{Colors.GREEN}✓{Colors.RESET} {msg}")


def load_instance_file(path: str) -> Dict[str, Any]:
    """Read an instance description from YAML."""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read instance file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed instance file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Instance file {path} must contain a mapping")
    config = data.get('config') or {}
    if not isinstance(config, dict):
        raise ConfigError(f"'config' in {path} must be a mapping")
    return data


def default_config_path() -> Optional[str]:
    """$CORRAL_CONFIG, else the system settings file if it exists."""
    path = os.environ.get('CORRAL_CONFIG')
    if path:
        return path
    if os.path.exists(Paths.CONFIG_FILE):
        return Paths.CONFIG_FILE
    return None


class CorralCLI:
    """CLI handler for profile commands."""

    def __init__(
        self,
        settings: CorralSettings,
        host: Optional[HostCapabilities] = None,
        manager: Optional[AppArmorProfileManager] = None,
    ):
        self.settings = settings
        self._host = host
        self.manager = manager or AppArmorProfileManager(settings)

    @property
    def host(self) -> HostCapabilities:
        if self._host is None:
            self._host = detect_host_capabilities(self.settings)
        return self._host

    def _instance(self, args: argparse.Namespace) -> Instance:
        data: Dict[str, Any] = {}
        if getattr(args, 'instance_file', None):
            data = load_instance_file(args.instance_file)

        project = args.project or data.get('project') or DEFAULT_PROJECT
        name = args.name or data.get('name')
        if not name:
            raise ConfigError("An instance name is required (--name or 'name' in the instance file)")
        return Instance.from_config(str(project), str(name), data.get('config'))

    def cmd_names(self, args: argparse.Namespace) -> int:
        identity = self.manager.identity(self._instance(args))
        if args.json:
            print(json.dumps({
                'short_name': identity.short_name,
                'full_name': identity.full_name,
                'namespace': identity.namespace,
            }, indent=2))
        else:
            print(f"{Colors.BOLD}Short name:{Colors.RESET} {identity.short_name}")
            print(f"{Colors.BOLD}Full name:{Colors.RESET}  {identity.full_name}")
            print(f"{Colors.BOLD}Namespace:{Colors.RESET}  {identity.namespace}")
        return 0

    def cmd_render(self, args: argparse.Namespace) -> int:
        sys.stdout.write(self.manager.profile_content(self.host, self._instance(args)))
        return 0

    def cmd_load(self, args: argparse.Namespace) -> int:
        instance = self._instance(args)
        self.manager.load(self.host, instance)
        print_success(f"Loaded profile for {instance.project}/{instance.name}")
        return 0

    def cmd_unload(self, args: argparse.Namespace) -> int:
        instance = self._instance(args)
        self.manager.unload(self.host, instance)
        print_success(f"Unloaded profile for {instance.project}/{instance.name}")
        return 0

    def cmd_parse(self, args: argparse.Namespace) -> int:
        instance = self._instance(args)
        self.manager.parse(self.host, instance)
        print_success(f"Profile for {instance.project}/{instance.name} parses")
        return 0

    def cmd_delete(self, args: argparse.Namespace) -> int:
        instance = self._instance(args)
        self.manager.delete(self.host, instance)
        print_success(f"Deleted profile for {instance.project}/{instance.name}")
        return 0

    def cmd_host(self, args: argparse.Namespace) -> int:
        capabilities = self.host.as_dict()
        if args.json:
            print(json.dumps(capabilities, indent=2))
        else:
            print(f"{Colors.BOLD}Host AppArmor capabilities{Colors.RESET}")
            for key, value in capabilities.items():
                marker = f"{Colors.GREEN}yes{Colors.RESET}" if value else "no"
                print(f"  {key:20} {marker}")
        return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog='corralctl',
        description='Manage per-instance AppArmor profiles',
    )
    parser.add_argument('--config', help=f'Settings file (default: $CORRAL_CONFIG or {Paths.CONFIG_FILE})')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--json-logs', action='store_true', help='Log in JSON')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    def add_instance_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument('--project', '-p', help=f'Project (default: {DEFAULT_PROJECT})')
        sub.add_argument('--name', '-n', help='Instance name')
        sub.add_argument('--instance-file', '-f', help='YAML instance description')

    names = subparsers.add_parser('names', help='Show derived profile names')
    add_instance_args(names)
    names.add_argument('--json', action='store_true', help='Output as JSON')

    render = subparsers.add_parser('render', help='Print the rendered profile')
    add_instance_args(render)

    for command, text in (
        ('load', 'Compile and load the profile'),
        ('unload', 'Unload the profile from the kernel'),
        ('parse', 'Parse the profile without loading it'),
        ('delete', 'Remove the profile from disk and cache'),
    ):
        add_instance_args(subparsers.add_parser(command, help=text))

    host = subparsers.add_parser('host', help='Show host AppArmor capabilities')
    host.add_argument('--json', action='store_true', help='Output as JSON')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.no_color or not sys.stdout.isatty():
        Colors.disable()

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(verbose=args.verbose, json_format=args.json_logs)

    try:
        settings = load_settings(args.config or default_config_path())
        cli = CorralCLI(settings)

        command_map = {
            'names': cli.cmd_names,
            'render': cli.cmd_render,
            'load': cli.cmd_load,
            'unload': cli.cmd_unload,
            'parse': cli.cmd_parse,
            'delete': cli.cmd_delete,
            'host': cli.cmd_host,
        }
        return command_map[args.command](args)
    except (AppArmorError, ConfigError) as e:
        print_error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
