"""Saving `docker load` tarballs into the local image cache."""

from __future__ import annotations

import json
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import IO


class ImageLoadError(Exception):
    """An image tarball could not be read or stored."""


def _repo_tags(entry: object) -> list:
    if not isinstance(entry, dict):
        return []
    for key, value in entry.items():
        if isinstance(key, str) and key.lower() == "repotags" and isinstance(value, list):
            return value
    return []


def parse_image_tag(path: str | os.PathLike) -> str:
    """Return the first repository tag in the manifest.json of an image tarball."""
    try:
        archive = tarfile.open(path, mode="r:")
    except FileNotFoundError as exc:
        raise ImageLoadError(f"failed to open file: {exc}") from exc
    except (OSError, tarfile.TarError) as exc:
        raise ImageLoadError(f"failed to read image tarball: {exc}") from exc

    with archive:
        member = next((m for m in archive if m.name == "manifest.json"), None)
        if member is None:
            raise ImageLoadError("no manifest.json found in image tarball")
        reader = archive.extractfile(member)
        if reader is None:
            raise ImageLoadError("no manifest.json found in image tarball")
        try:
            manifest = json.load(reader)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ImageLoadError(f"failed to parse manifest.json: {exc}") from exc

    if not isinstance(manifest, list):
        raise ImageLoadError("failed to parse manifest.json: expected a list")
    if manifest:
        tags = _repo_tags(manifest[0])
        if tags:
            return str(tags[0])
    raise ImageLoadError(f"no image tags found in manifest {manifest!r}")


def loaded_image_path(cache_dir: str | os.PathLike, tag: str) -> Path:
    """Where a loaded image with this tag is kept in the cache."""
    return Path(cache_dir) / ("loaded--" + tag.replace("/", "--") + ".tar")


def load_image(
    cache_dir: str | os.PathLike | None,
    input_path: str | os.PathLike | None,
    stdin: IO[bytes],
) -> Path:
    """Store an image tarball from ``input_path`` (or ``stdin``) in the cache.

    Returns the path of the cached tarball.
    """
    if not cache_dir:
        raise ImageLoadError("load command requires KINI_CACHE to be set")

    temporary: str | None = None
    try:
        if not input_path:
            with tempfile.NamedTemporaryFile(delete=False) as handle:
                temporary = handle.name
                try:
                    shutil.copyfileobj(stdin, handle)
                    handle.flush()
                    os.fsync(handle.fileno())
                except OSError as exc:
                    raise ImageLoadError(f"failed to write stdin to temporary file: {exc}") from exc
            input_path = temporary

        try:
            tag = parse_image_tag(input_path)
        except ImageLoadError as exc:
            raise ImageLoadError(f'no image tag found in "{input_path}": {exc}') from exc

        out_path = loaded_image_path(cache_dir, tag)
        try:
            with open(input_path, "rb") as source, open(out_path, "wb") as target:
                shutil.copyfileobj(source, target)
        except OSError as exc:
            raise ImageLoadError(f'failed to save tarball in "{out_path}": {exc}') from exc
        return out_path
    finally:
        if temporary is not None:
            Path(temporary).unlink(missing_ok=True)