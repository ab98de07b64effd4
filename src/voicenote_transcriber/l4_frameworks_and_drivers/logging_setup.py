"""File-based debug logging setup."""

from __future__ import annotations

import logging
from pathlib import Path


def setup_file_logging(output_dir: Path, verbose: bool = False) -> Path:
    """Configure file-based debug logging into *output_dir*; mirror to stderr when *verbose*."""
    output_dir.mkdir(parents=True, exist_ok=True)
    log_path = output_dir / 'vnt_debug.log'
    handler = logging.FileHandler(log_path, encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    root = logging.getLogger('vnt')
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    if verbose:
        console = logging.StreamHandler()
        console.setLevel(logging.INFO)
        console.setFormatter(logging.Formatter('%(levelname)s %(message)s'))
        root.addHandler(console)
    logging.getLogger('vnt.cli').info('Debug logging started → %s', log_path)
    return log_path
