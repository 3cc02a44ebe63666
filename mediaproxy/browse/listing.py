from pydantic import BaseModel

from mediaproxy.browse.tree import MAX_TREE_DEPTH, FileLeaf, FileList, Folder, Node
from mediaproxy.content_types import extension_of
from mediaproxy.errors import InvalidInput
from mediaproxy.paths import join_path

TEMP_FILE_PREFIX = "~$"


class ListingEntry(BaseModel):
    name: str
    isFolder: bool
    path: str


def _visible(name: str, extensions: tuple[str, ...]) -> bool:
    if name.startswith(TEMP_FILE_PREFIX):
        return False
    return not extensions or extension_of(name) in extensions


def list_entries(
    node: Node,
    base_path: str,
    keyword: str | None = None,
    extensions: tuple[str, ...] = (),
) -> list[ListingEntry]:
    """List ``node``, or search below it when ``keyword`` is given.

    A search returns only matching files, flattened, in depth-first order with
    each folder's own files before those of its sub-folders.
    """
    if isinstance(node, FileLeaf):
        raise InvalidInput("Path is not a folder")

    keyword = (keyword or "").strip().lower()
    if keyword:
        return _search(node, base_path, keyword, extensions)

    items = []
    if isinstance(node, Folder):
        for name in node.children:
            items.append(ListingEntry(name=name, isFolder=True, path=join_path(base_path, name)))
    for name in node.files:
        if _visible(name, extensions):
            items.append(ListingEntry(name=name, isFolder=False, path=join_path(base_path, name)))
    return items


def _search(node: Node, base_path: str, keyword: str, extensions: tuple[str, ...]) -> list[ListingEntry]:
    results = []
    stack: list[tuple[Node, str, int]] = [(node, base_path, 0)]
    while stack:
        current, path, depth = stack.pop()
        for name in current.files:
            if keyword in name.lower() and _visible(name, extensions):
                results.append(ListingEntry(name=name, isFolder=False, path=join_path(path, name)))

        if isinstance(current, Folder) and depth < MAX_TREE_DEPTH:
            # Reversed so the first child is visited first
            for name, child in reversed(list(current.children.items())):
                if isinstance(child, (Folder, FileList)):
                    stack.append((child, join_path(path, name), depth + 1))
    return results
