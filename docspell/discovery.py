"""
File Discovery
==============
Resolves command line paths into the Rust and markdown files to check.

- ``Cargo.toml``: the crate's ``src/`` tree, explicit ``[lib]``/``[[bin]]``
  paths, the README named by ``package.readme`` (default ``README.md``)
  and every workspace member
- a ``.rs``/``.md`` file: that file
- a directory: its manifest when it has one, otherwise the files directly
  inside it; with ``recursive`` every file below it
"""

import tomllib
from pathlib import Path
from typing import List, Iterable, Optional, Set

from .config_logging import ManifestError, get_logger

logger = get_logger('discovery')

MANIFEST_NAME = "Cargo.toml"
SOURCE_SUFFIXES = {'.rs'}
MARKDOWN_SUFFIXES = {'.md', '.markdown'}
SKIP_DIRS = {'target', '.git', 'node_modules'}


def is_checkable(path: Path) -> bool:
    return path.suffix in SOURCE_SUFFIXES or path.suffix in MARKDOWN_SUFFIXES


def _walk(directory: Path, suffixes: Set[str]) -> Iterable[Path]:
    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            if entry.name in SKIP_DIRS or entry.name.startswith('.'):
                continue
            yield from _walk(entry, suffixes)
        elif entry.suffix in suffixes:
            yield entry


def load_manifest(path: Path) -> dict:
    """
    Parse a Cargo manifest.

    Raises:
        ManifestError: If the file cannot be read or is not valid TOML
    """
    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}", path=str(path)) from e
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(f"Invalid manifest {path}: {e}", path=str(path)) from e


def manifest_files(manifest_path: Path, skip_readme: bool = False,
                   _seen: Optional[Set[Path]] = None) -> List[Path]:
    """Files of the crate (and workspace members) described by a manifest."""
    seen = _seen if _seen is not None else set()
    manifest_path = manifest_path.resolve()
    if manifest_path in seen:
        return []
    seen.add(manifest_path)

    manifest = load_manifest(manifest_path)
    root = manifest_path.parent
    files: List[Path] = []

    package = manifest.get('package')
    if package is not None:
        if not isinstance(package, dict):
            raise ManifestError("[package] must be a table", path=str(manifest_path))
        src = root / 'src'
        if src.is_dir():
            files.extend(_walk(src, SOURCE_SUFFIXES))
        targets = [manifest.get('lib')] + list(manifest.get('bin', []))
        for target in targets:
            if isinstance(target, dict) and isinstance(target.get('path'), str):
                target_path = root / target['path']
                if target_path.is_file():
                    files.append(target_path)
        if not skip_readme:
            readme = package.get('readme', True)
            if readme is True:
                readme = 'README.md'
            if isinstance(readme, str):
                readme_path = root / readme
                if readme_path.is_file():
                    files.append(readme_path)
                else:
                    logger.warning("Manifest README not found", path=str(readme_path))

    workspace = manifest.get('workspace')
    if isinstance(workspace, dict):
        excluded = {(root / p).resolve() for p in workspace.get('exclude', [])}
        for member in workspace.get('members', []):
            for member_dir in sorted(root.glob(member)):
                if member_dir.resolve() in excluded:
                    continue
                member_manifest = member_dir / MANIFEST_NAME
                if member_manifest.is_file():
                    files.extend(manifest_files(member_manifest, skip_readme, seen))

    if package is None and not isinstance(workspace, dict):
        raise ManifestError("Manifest has neither [package] nor [workspace]",
                            path=str(manifest_path))
    return files


def discover(paths: Iterable, recursive: bool = False, skip_readme: bool = False) -> List[Path]:
    """
    Resolve paths into the sorted, de-duplicated list of files to check.

    Args:
        paths: Files, directories or manifests; empty means the working directory
        recursive: Descend into subdirectories of directory arguments
        skip_readme: Ignore README files named by manifests

    Raises:
        ManifestError: If a manifest cannot be read or parsed
    """
    paths = [Path(p) for p in paths] or [Path.cwd()]
    found: List[Path] = []
    for path in paths:
        if path.is_file():
            if path.name == MANIFEST_NAME:
                found.extend(manifest_files(path, skip_readme))
            elif is_checkable(path):
                found.append(path)
            else:
                logger.warning("Not a Rust or markdown file, skipping", path=str(path))
        elif path.is_dir():
            if recursive:
                found.extend(_walk(path, SOURCE_SUFFIXES | MARKDOWN_SUFFIXES))
            elif (path / MANIFEST_NAME).is_file():
                found.extend(manifest_files(path / MANIFEST_NAME, skip_readme))
            else:
                found.extend(sorted(p for p in path.iterdir() if p.is_file() and is_checkable(p)))
        else:
            logger.warning("Path does not exist, skipping", path=str(path))

    unique = {}
    for path in found:
        unique.setdefault(path.resolve(), path)
    return sorted(unique.values(), key=lambda p: str(p))
