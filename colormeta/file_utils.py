# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
File replacement helpers

Copyright 2025 DNAi inc.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Union

logger = logging.getLogger(__name__)


@contextmanager
def atomic_output(target_path: Union[str, Path]) -> Iterator[BinaryIO]:
    """
    Write a file through a temporary file and atomically replace the target.

    The temporary file is created in the target's directory so that the
    final rename never crosses a file system. The new file keeps the
    permission bits of the file it replaces. If the block raises, the
    temporary file is removed and the target is left untouched.

    Args:
        target_path: File to create or replace

    Yields:
        Binary stream to write the new content to
    """
    target = Path(target_path)
    tmp = _temporary_sibling(target, '.tmp')
    tmp_path = tmp.name
    try:
        with tmp:
            yield tmp
        _match_permissions(target, tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.debug("Replaced %s", target)


@contextmanager
def staged_file(target_path: Union[str, Path]) -> Iterator[str]:
    """
    Provide a scratch file next to `target_path` that is always removed.

    Used to build a file in several passes before the final result is
    moved into place with `atomic_output`.

    Yields:
        Path of the (empty) scratch file
    """
    tmp = _temporary_sibling(Path(target_path), '.stage')
    tmp.close()
    try:
        yield tmp.name
    finally:
        if os.path.exists(tmp.name):
            os.unlink(tmp.name)


def _temporary_sibling(target: Path, suffix: str):
    directory = target.parent if str(target.parent) else Path('.')
    return tempfile.NamedTemporaryFile(
        dir=directory, prefix=f'.{target.name}.', suffix=suffix, delete=False
    )


def _match_permissions(target: Path, tmp_path: str) -> None:
    # Temporary files are created 0600; keep the mode a plain open() would give
    if target.exists():
        shutil.copymode(target, tmp_path)
    else:
        umask = os.umask(0)
        os.umask(umask)
        os.chmod(tmp_path, 0o666 & ~umask)
