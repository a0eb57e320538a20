"""Dispatches client requests against the served directory.

Each request is resolved relative to the client's current directory.  The
in-memory tree records which directories are in use: every directory a
client stands in, or passes through while a request is handled, carries an
access count, and a directory in use cannot be removed.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from .client_info import ClientInfo, FileSystemTree, Node
from .protocol import FileInfo, Request, RequestType, Response, ResponseType

__all__ = ["ClientHandler", "DEFAULT_SERVER_DIR"]

DEFAULT_SERVER_DIR = "fenris_server_dir"


@dataclass
class _Target:
    """Where a file request points: a directory node and a name inside it."""

    directory: Node
    name: str
    filename: str
    path: Path
    request: Request


def _error(message: str) -> Response:
    return Response(type=ResponseType.ERROR, success=False, error_message=message)


def _success(
    response_type: ResponseType = ResponseType.SUCCESS,
    data: Union[bytes, str] = b"",
) -> Response:
    return Response(type=response_type, success=True, data=data)


def _directory_of(nodes: list[Node]) -> str:
    return "/" + "".join(f"{node.name}/" for node in nodes[1:])


def _stat_info(name: str, path: Union[Path, os.DirEntry]) -> FileInfo:
    if isinstance(path, Path):
        st = path.stat()
        is_dir = path.is_dir()
    else:
        st = path.stat(follow_symlinks=False)
        is_dir = path.is_dir(follow_symlinks=False)
    return FileInfo(
        name=name,
        size=0 if is_dir else st.st_size,
        is_directory=is_dir,
        modified_time=int(st.st_mtime),
    )


class ClientHandler:
    """Answers file-system requests from clients."""

    def __init__(
        self,
        logger_name: str = "fenris_server",
        root_dir: Union[str, Path] = DEFAULT_SERVER_DIR,
        tree: FileSystemTree | None = None,
    ) -> None:
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.tree = tree if tree is not None else FileSystemTree()
        self._logger = logging.getLogger(logger_name)
        self._count_lock = threading.Lock()
        self._handlers: dict[RequestType, Callable[[_Target], Response]] = {
            RequestType.CREATE_FILE: self._create_file,
            RequestType.READ_FILE: self._read_file,
            RequestType.WRITE_FILE: self._write_file,
            RequestType.DELETE_FILE: self._delete_file,
            RequestType.INFO_FILE: self._info_file,
            RequestType.CREATE_DIR: self._create_dir,
            RequestType.LIST_DIR: self._list_dir,
            RequestType.DELETE_DIR: self._delete_dir,
        }

    def handle_request(self, request: Request, client_info: ClientInfo) -> Response:
        """Carry out one request for a client and return the response."""
        command = request.command
        self._logger.debug("handling request of type: %d", int(command))

        if command == RequestType.PING:
            return _success(ResponseType.PONG, "PONG")

        if command == RequestType.TERMINATE:
            self._release(self._position_of(client_info))
            client_info.current_node = self.tree.root
            client_info.current_directory = "/"
            client_info.depth = 0
            client_info.keep_connection = False
            return _success(ResponseType.TERMINATED, "Terminated successfully!")

        nodes = self._position_of(client_info)
        self._hold(nodes)
        transferred = False
        try:
            name = self._navigate(nodes, request.filename)

            if command == RequestType.CHANGE_DIR:
                self._step(nodes, name)
                self._move_client(client_info, nodes)
                transferred = True
                self._logger.debug("changed directory to '%s'", client_info.current_directory)
                return _success(data=client_info.current_directory)

            handler = self._handlers.get(command)
            if handler is None:
                self._logger.warning("unknown command: %d", int(command))
                return _error("Unknown command")

            target = self._target(nodes, name, request)
            if target is None:
                self._logger.error("path escapes the served directory: '%s'", request.filename)
                return _error("Invalid Path!")
            return handler(target)
        finally:
            if not transferred:
                self._release(nodes)

    # -- navigation -------------------------------------------------------

    def _position_of(self, client_info: ClientInfo) -> list[Node]:
        nodes: list[Node] = []
        node: Node | None = client_info.current_node or self.tree.root
        while node is not None:
            nodes.append(node)
            node = node.parent
        nodes.reverse()
        return nodes

    def _hold(self, nodes: list[Node]) -> None:
        with self._count_lock:
            for node in nodes[1:]:
                node.access_count += 1

    def _release(self, nodes: list[Node]) -> None:
        with self._count_lock:
            for node in nodes[1:]:
                node.access_count -= 1

    def _adjust(self, node: Node, delta: int) -> None:
        with self._count_lock:
            node.access_count += delta

    def _move_client(self, client_info: ClientInfo, nodes: list[Node]) -> None:
        previous = self._position_of(client_info)
        client_info.current_node = nodes[-1]
        client_info.current_directory = _directory_of(nodes)
        client_info.depth = len(nodes) - 1
        self._release(previous)

    def _step(self, nodes: list[Node], name: str) -> None:
        if name == "..":
            if len(nodes) > 1:
                self._adjust(nodes.pop(), -1)
            else:
                self._logger.debug("already at root directory")
        elif name == ".":
            self._logger.debug("staying in current directory")
        else:
            with self._count_lock:
                child = self.tree.find_directory(nodes[-1], name)
                if child is not None:
                    child.access_count += 1
            if child is None:
                self._logger.error("directory '%s' not found", name)
            else:
                nodes.append(child)

    def _navigate(self, nodes: list[Node], path: str) -> str:
        """Walk every directory component of ``path``; return the last component."""
        if path.endswith("/"):
            path = path[:-1]
        if path.startswith("/"):
            while len(nodes) > 1:
                self._step(nodes, "..")
            path = path[1:]
        *parents, last = path.split("/")
        for part in parents:
            self._step(nodes, part)
        return last

    def _target(self, nodes: list[Node], name: str, request: Request) -> _Target | None:
        filename = _directory_of(nodes) + name
        path_text = str(self.root_dir) + filename
        if filename.endswith("/"):
            filename = filename[:-1]
            name = name[:-1]
        if not self._contained(path_text):
            return None
        return _Target(nodes[-1], name, filename, Path(path_text), request)

    def _contained(self, path_text: str) -> bool:
        root = os.path.normpath(os.path.abspath(self.root_dir))
        candidate = os.path.normpath(os.path.abspath(path_text))
        return candidate == root or candidate.startswith(root + os.sep)

    # -- commands ---------------------------------------------------------

    def _create_file(self, target: _Target) -> Response:
        with target.directory.lock:
            try:
                with open(target.path, "xb"):
                    pass
            except FileExistsError:
                self._logger.warning("file already exists: '%s'", target.filename)
                return _error("File already exists!")
            except OSError:
                self._logger.error("failed to create file: '%s'", target.filename)
                return _error("Failed to create file!")
            if not self.tree.add_node(target.filename, False):
                self._logger.error("tree not synchronized with file system")
                return _error("FST not synchronized with file system.")
        return _success()

    def _read_file(self, target: _Target) -> Response:
        node = self.tree.find_file(target.directory, target.name)
        if node is None:
            self._logger.error("file not found: '%s'", target.filename)
            return _error("File not found")
        self._adjust(node, 1)
        try:
            content = target.path.read_bytes()
        except FileNotFoundError:
            return _error("File not found")
        except OSError:
            self._logger.error("failed to read file: '%s'", target.filename)
            return _error("Failed to read file")
        finally:
            self._adjust(node, -1)
        return _success(ResponseType.FILE_CONTENT, content)

    def _write_file(self, target: _Target) -> Response:
        node = self.tree.find_file(target.directory, target.name)
        if node is None:
            with target.directory.lock:
                try:
                    with open(target.path, "xb"):
                        pass
                except FileExistsError:
                    self._logger.error("this should not happen: '%s'", target.filename)
                    return _error("This should not happen")
                except OSError:
                    self._logger.error("failed to create file: '%s'", target.filename)
                    return _error("Failed to create file")
                if not self.tree.add_node(target.filename, False):
                    return _error("FST not synchronized with file system.")
                node = self.tree.find_file(target.directory, target.name)
            if node is None:
                return _error("FST not synchronized with file system.")

        with node.lock:
            try:
                target.path.write_bytes(target.request.data)
            except PermissionError:
                self._logger.error("permission denied writing '%s'", target.filename)
                return _error("Permission denied to write to the file")
            except OSError:
                self._logger.error("failed to write file: '%s'", target.filename)
                return _error("Failed to write file")
        return _success(data="The file has been written successfully")

    def _delete_file(self, target: _Target) -> Response:
        with target.directory.lock:
            node = self.tree.find_file(target.directory, target.name)
            if node is None:
                self._logger.error("file not found: '%s'", target.filename)
                return _error("File not found")
            with node.lock:
                if target.path.is_dir():
                    return _error("Failed to delete file")
                try:
                    target.path.unlink()
                except FileNotFoundError:
                    return _error("File not found")
                except OSError:
                    self._logger.error("failed to delete file: '%s'", target.filename)
                    return _error("Failed to delete file")
            self.tree.remove_node(target.filename)
        return _success()

    def _info_file(self, target: _Target) -> Response:
        node = self.tree.find_file(target.directory, target.name)
        if node is None:
            self._logger.error("file not found: '%s'", target.filename)
            return _error("File not found")
        self._adjust(node, 1)
        try:
            info = _stat_info(str(target.path), target.path)
        except FileNotFoundError:
            return _error("File not found")
        except OSError:
            self._logger.error("failed to fetch file info: '%s'", target.filename)
            return _error("Failed to fetch file info")
        finally:
            self._adjust(node, -1)
        response = _success(ResponseType.FILE_INFO)
        response.file_info = info
        return response

    def _create_dir(self, target: _Target) -> Response:
        with target.directory.lock:
            try:
                target.path.mkdir()
            except FileExistsError:
                if target.path.is_dir():
                    self._logger.warning("directory already exists: '%s'", target.filename)
                    return _error("Directory already exists")
                return _error("Failed to create directory")
            except OSError:
                self._logger.error("failed to create directory: '%s'", target.filename)
                return _error("Failed to create directory")
            self.tree.add_node(target.filename, True)
        return _success()

    def _list_dir(self, target: _Target) -> Response:
        with target.directory.lock:
            try:
                with os.scandir(target.path) as entries:
                    listing = [
                        _stat_info(entry.name, entry)
                        for entry in sorted(entries, key=lambda e: e.name)
                    ]
            except FileNotFoundError:
                self._logger.error("directory not found: '%s'", target.filename)
                return _error("Directory not found")
            except NotADirectoryError:
                self._logger.error("path is not a directory: '%s'", target.filename)
                return _error("Path is not a directory")
            except OSError:
                self._logger.error("failed to list directory: '%s'", target.filename)
                return _error("Failed to list directory")
        response = _success(ResponseType.DIR_LISTING)
        response.directory_listing = listing
        return response

    def _delete_dir(self, target: _Target) -> Response:
        with target.directory.lock:
            node = self.tree.find_directory(target.directory, target.name)
            if node is None:
                self._logger.error("directory does not exist: '%s'", target.filename)
                return _error("Directory does not exist")
            with self._count_lock:
                if node.access_count > 0:
                    self._logger.warning("directory is in use: '%s'", target.filename)
                    return _error("Directory is in use")
                try:
                    shutil.rmtree(target.path)
                except OSError:
                    self._logger.error("failed to delete directory: '%s'", target.filename)
                    return _error("Failed to delete directory")
                self.tree.remove_node(target.filename)
        return _success(data="DELETE_DIRECTORY")