import os
import re

from .log import get_logger

logger = get_logger('hooks')

AUTO_UPDATE_KEY = 'AutoUpdateBehavior'
# 1 = only update when the game is launched
AUTO_UPDATE_VALUE = '1'
AUTO_UPDATE_PATTERN = re.compile(r'"AutoUpdateBehavior"\s*"\d*"')


def appmanifest_path(steamapps_dir, appid) -> str:
    return os.path.join(os.fspath(steamapps_dir), f'appmanifest_{appid}.acf')


def patch_auto_update(content: str) -> str:
    replacement = f'"{AUTO_UPDATE_KEY}"\t\t"{AUTO_UPDATE_VALUE}"'
    if f'"{AUTO_UPDATE_KEY}"' in content:
        return AUTO_UPDATE_PATTERN.sub(replacement, content)
    last_brace = content.rfind('}')
    if last_brace == -1:
        return content
    return content[:last_brace] + f'\t{replacement}\n' + content[last_brace:]


def disable_auto_update(steamapps_dir, appid) -> bool:
    path = appmanifest_path(steamapps_dir, appid)
    if not os.path.exists(path):
        logger.info('No appmanifest found for %s, skipping auto-update disable', appid)
        return False
    try:
        with open(path, 'r', encoding='utf-8', errors='surrogateescape', newline='') as f:
            content = f.read()
        updated = patch_auto_update(content)
        if updated != content:
            with open(path, 'w', encoding='utf-8', errors='surrogateescape', newline='') as f:
                f.write(updated)
        logger.info('Disabled auto-update for App ID: %s', appid)
        return True
    except OSError as exc:
        logger.error('Failed to disable auto-update for %s: %s', appid, exc)
        return False
