"""
Enumeration of the local directory tree being mirrored.
"""
import os
import stat
from dataclasses import dataclass, field
from typing import Dict, List

from loguru import logger


@dataclass
class LocalFile:
    """A regular file found under the local directory."""
    relative_path: str
    path: str
    size: int
    mtime: float


@dataclass
class LocalTree:
    """Files found by a scan, keyed by POSIX relative path."""
    files: Dict[str, LocalFile] = field(default_factory=dict)
    skipped_symlinks: List[str] = field(default_factory=list)

    def relative_paths(self) -> List[str]:
        return sorted(self.files)


def scan_local_tree(root: str, follow_symlinks: bool = False) -> LocalTree:
    """
    Walk a directory and collect its regular files.
    
    Symlinks (to files or directories) are skipped unless ``follow_symlinks``
    is set; skipped links are reported so they can be logged.
    
    Args:
        root: Directory to scan
        follow_symlinks: Whether to follow symbolic links
        
    Returns:
        LocalTree with files and skipped symlinks
        
    Raises:
        NotADirectoryError: If root is not a directory
    """
    if not os.path.isdir(root):
        raise NotADirectoryError(f"Local directory does not exist: {root}")
    
    tree = LocalTree()
    
    for dirpath, dirnames, filenames in os.walk(root, followlinks=follow_symlinks):
        dirnames.sort()
        if not follow_symlinks:
            for dirname in dirnames:
                full_path = os.path.join(dirpath, dirname)
                if os.path.islink(full_path):
                    tree.skipped_symlinks.append(_relative(root, full_path))
        
        for filename in sorted(filenames):
            full_path = os.path.join(dirpath, filename)
            relative_path = _relative(root, full_path)
            
            if os.path.islink(full_path) and not follow_symlinks:
                tree.skipped_symlinks.append(relative_path)
                continue
            
            try:
                file_stat = os.stat(full_path)
            except OSError as e:
                # Broken links and files removed mid-scan
                logger.warning(f"Skipping unreadable path {relative_path}: {e}")
                continue
            
            if not stat.S_ISREG(file_stat.st_mode):
                logger.debug(f"Skipping non-regular file {relative_path}")
                continue
            
            tree.files[relative_path] = LocalFile(
                relative_path=relative_path,
                path=full_path,
                size=file_stat.st_size,
                mtime=file_stat.st_mtime
            )
    
    return tree


def _relative(root: str, path: str) -> str:
    return os.path.relpath(path, root).replace(os.sep, '/')
