"""In-memory directory tree built from the origin's ``directory.json``.

The JSON document nests folders as objects. An object's reserved ``"files"``
key holds the file names of that folder; a folder may also be a bare array of
file names.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Union

from mediaproxy.paths import split_path

logger = logging.getLogger(__name__)

FILES_KEY = "files"
MAX_TREE_DEPTH = 64


@dataclass(frozen=True)
class Folder:
    children: dict[str, "Node"] = field(default_factory=dict)
    files: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileList:
    files: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileLeaf:
    name: str


Node = Union[Folder, FileList, FileLeaf]


def parse_tree(document: Any, depth: int = 0) -> Node:
    """Build a node from a decoded JSON value."""
    if isinstance(document, list):
        return FileList(files=_file_names(document))
    if not isinstance(document, dict):
        raise ValueError(f"Expected a JSON object or array, got {type(document).__name__}")

    children: dict[str, Node] = {}
    files: tuple[str, ...] = ()
    for key, value in document.items():
        if key == FILES_KEY and isinstance(value, list):
            files = _file_names(value)
        elif isinstance(value, (dict, list)):
            if depth + 1 >= MAX_TREE_DEPTH:
                logger.warning(f"Directory tree deeper than {MAX_TREE_DEPTH} levels, dropping '{key}'")
                continue
            children[key] = parse_tree(value, depth + 1)
    return Folder(children=children, files=files)


def _file_names(values: list) -> tuple[str, ...]:
    return tuple(v for v in values if isinstance(v, str))


def files_of(node: Node) -> tuple[str, ...]:
    if isinstance(node, (Folder, FileList)):
        return node.files
    return ()


def resolve(tree: Node, path: str) -> Node | None:
    """Walk ``path`` from ``tree``. Returns None when any segment is missing."""
    node = tree
    segments = split_path(path)
    for i, segment in enumerate(segments):
        if isinstance(node, Folder) and segment in node.children:
            node = node.children[segment]
        elif i == len(segments) - 1 and segment in files_of(node):
            return FileLeaf(segment)
        else:
            return None
    return node
