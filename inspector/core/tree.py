from __future__ import annotations

import posixpath
from typing import Dict, Iterable, List, Optional

from .models import DIRECTORY, FileNode, FileRecord
from .sizes import format_size


def _depth(path: str) -> int:
    return path.count("/")


def _node(record: FileRecord) -> FileNode:
    return FileNode(
        name=record.name,
        path=record.path,
        size=format_size(record.size),
        kind=record.kind,
        modified=record.modified,
        children=[] if record.kind == DIRECTORY else None,
    )


def _synthesize(path: str, root: str, nodes: Dict[str, FileNode]) -> Optional[FileNode]:
    """Create the missing directory chain ending at ``path``."""
    if path in nodes:
        return nodes[path]
    if path == root or not path.startswith(root.rstrip("/") + "/"):
        return None
    parent = _synthesize(posixpath.dirname(path), root, nodes)
    if parent is None or parent.children is None:
        return None
    node = FileNode(
        name=posixpath.basename(path),
        path=path,
        size=format_size(0),
        kind=DIRECTORY,
        children=[],
    )
    parent.children.append(node)
    nodes[path] = node
    return node


def build_tree(records: Iterable[FileRecord], root: str = "/", synthesize_missing: bool = False) -> List[FileNode]:
    """Assemble flat records into a tree and return the root's children.

    Records are processed shallowest first so a directory is always attached
    before its descendants. A record whose parent directory is not in the tree
    is dropped unless ``synthesize_missing`` is set, in which case the absent
    ancestors are created as empty directories.
    """
    top = FileNode(name="", path=root, size=format_size(0), kind=DIRECTORY, children=[])
    nodes: Dict[str, FileNode] = {root: top}

    for record in sorted(records, key=lambda r: _depth(r.path)):
        if record.path == root:
            continue
        parent_path = posixpath.dirname(record.path)
        parent = nodes.get(parent_path)
        if parent is None and synthesize_missing:
            parent = _synthesize(parent_path, root, nodes)
        if parent is None or parent.children is None:
            continue
        node = _node(record)
        parent.children.append(node)
        if node.children is not None:
            nodes[record.path] = node

    return top.children or []


def filter_tree(nodes: List[FileNode], query: str) -> List[FileNode]:
    """Case-insensitive name search returning new nodes.

    A directory is kept when its own name matches or any descendant does;
    its children are narrowed to the matching ones. The input is left intact.
    """
    needle = (query or "").lower()
    if not needle:
        return [n.model_copy(deep=True) for n in nodes]

    out: List[FileNode] = []
    for node in nodes:
        matches = needle in node.name.lower()
        if node.children is not None:
            kept = filter_tree(node.children, query)
            if matches or kept:
                out.append(node.model_copy(update={"children": kept}))
        elif matches:
            out.append(node.model_copy())
    return out
