"""Config parser logic."""

import os
from typing import Dict, Any, Tuple
import logging
import yaml

from ...errors import ExitFailedError
from ...typing import GitInterface

logger = logging.getLogger(__name__)

ConfigDict = Dict[str, Dict[str, Any]]

CONFIG_FILE_NAME = '.pystack.yaml'

def parse_config(git_cmd: GitInterface, repo_root: str = '.') -> ConfigDict:
    """Parse config from defaults, the repository config file and the git remote."""
    config: ConfigDict = {
        'repo': {
            'trunk': 'main',
            'remote': 'origin',
            'ignore_branches': [],
        },
        'user': {},
        'tool': {},
    }

    path = os.path.join(repo_root, CONFIG_FILE_NAME)
    try:
        with open(path, 'r') as f:
            logger.debug(f"Found {CONFIG_FILE_NAME}, loading...")
            file_config = yaml.safe_load(f)
            logger.debug(f"Config from {CONFIG_FILE_NAME}: {file_config}")
    except FileNotFoundError:
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        file_config = None

    if isinstance(file_config, dict):
        for section in ('repo', 'user', 'tool'):
            if isinstance(file_config.get(section), dict):
                config[section].update(file_config[section])

    if not config['repo'].get('github_repo_owner') or not config['repo'].get('github_repo_name'):
        remote = config['repo']['remote']
        try:
            remote_url = git_cmd.run_cmd(f"remote get-url {remote}").strip()
        except ExitFailedError as e:
            logger.debug(f"Failed to read url of remote {remote}: {e}")
            remote_url = ""
        owner, name = parse_remote_url(remote_url)
        if owner and not config['repo'].get('github_repo_owner'):
            config['repo']['github_repo_owner'] = owner
        if name and not config['repo'].get('github_repo_name'):
            config['repo']['github_repo_name'] = name

    return config

def parse_remote_url(remote_url: str) -> Tuple[str, str]:
    """Extract (owner, name) from an SSH or HTTPS GitHub remote URL."""
    if not remote_url:
        return "", ""
    if "://" in remote_url:
        # HTTPS format: https://github.com/owner/repo.git
        repo_part = remote_url.split("://", 1)[1].split("/", 1)[-1]
    elif "@" in remote_url:
        # SSH format: git@github.com:owner/repo.git
        repo_part = remote_url.split(":")[-1]
    else:
        repo_part = remote_url

    if repo_part.endswith(".git"):
        repo_part = repo_part[:-len(".git")]
    parts = repo_part.strip().strip("/").split("/")
    if len(parts) >= 2:
        return parts[-2], parts[-1]
    return "", ""
