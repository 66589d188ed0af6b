import argparse
import json
import logging
import sys

from . import __version__
from .config import Settings
from .log import setup_logging
from .service import ManifestService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='manifest-unlock', description='Fetch and install Steam manifest bundles.')
    parser.add_argument('--config', help='path to settings.json')
    parser.add_argument('--steam-path', help='override the detected Steam directory')
    parser.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    sub = parser.add_subparsers(dest='command', required=True)

    download = sub.add_parser('download', help='download and install the manifest for an appid')
    download.add_argument('appid')
    download.add_argument('--source', action='append', dest='sources',
                          help='restrict to this source (repeatable, keeps order)')

    sub.add_parser('list', help='show installed appids')

    remove = sub.add_parser('remove', help='delete installed files for an appid')
    remove.add_argument('appid')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    settings = Settings.load(args.config)
    if args.steam_path:
        settings.data['steam_path'] = args.steam_path
    if getattr(args, 'sources', None):
        settings.data['sources'] = args.sources

    service = ManifestService.from_settings(settings)
    try:
        if args.command == 'download':
            result = service.download_manifest(args.appid)
        elif args.command == 'list':
            games = service.get_installed_games()
            for game in games:
                print(f"{game['id']}\t{game['name']}\t{len(game['files'])} file(s)\t{game['installedAt']}")
            return 0
        else:
            result = service.remove_game(args.appid)
    finally:
        service.close()

    print(json.dumps(result, indent=2))
    return 0 if result.get('success') else 1


if __name__ == '__main__':
    sys.exit(main())
