"""In-memory tree mirroring the served directory, and per-client state."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

__all__ = ["Node", "FileSystemTree", "ClientInfo"]


@dataclass(eq=False)
class Node:
    """A file or directory in the tree."""

    name: str
    is_directory: bool = False
    parent: Node | None = field(default=None, repr=False)
    children: list[Node] = field(default_factory=list, repr=False)
    access_count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class FileSystemTree:
    """Tree of nodes rooted at "/", guarded by a single lock."""

    def __init__(self) -> None:
        self.root = Node(name="/", is_directory=True)
        self._lock = threading.Lock()

    def add_node(self, path: str, is_directory: bool) -> bool:
        """Add a node under its parent directory; False if there is no such directory."""
        with self._lock:
            slash = path.rfind("/")
            parent_path = path[:slash] if slash != -1 else path
            parent = self._traverse(parent_path)
            if parent is None or not parent.is_directory:
                return False
            node = Node(name=path[slash + 1:], is_directory=is_directory, parent=parent)
            parent.children.append(node)
            return True

    def remove_node(self, path: str) -> bool:
        """Detach a node; False if it is missing or in use."""
        with self._lock:
            node = self._traverse(path)
            if node is None or node.access_count > 0:
                return False
            if node.parent is not None:
                node.parent.children = [c for c in node.parent.children if c is not node]
            return True

    def find_node(self, path: str) -> Node | None:
        with self._lock:
            return self._traverse(path)

    def find_file(self, current_node: Node, name: str) -> Node | None:
        """Return the child file of ``current_node`` called ``name``."""
        with self._lock:
            return next(
                (c for c in current_node.children if c.name == name and not c.is_directory),
                None,
            )

    def find_directory(self, current_node: Node, name: str) -> Node | None:
        """Return the child directory of ``current_node`` called ``name``."""
        with self._lock:
            return next(
                (c for c in current_node.children if c.name == name and c.is_directory),
                None,
            )

    def _traverse(self, path: str) -> Node | None:
        current = self.root
        if path == "/":
            return current
        for segment in path.split("/"):
            if not segment:
                continue
            current = next((c for c in current.children if c.name == segment), None)
            if current is None:
                return None
        return current


@dataclass
class ClientInfo:
    """State the server keeps for one connected client."""

    client_id: int
    socket: Any = None
    encryption_key: bytes = b""
    current_directory: str = "/"
    depth: int = 0
    current_node: Node | None = None
    keep_connection: bool = True