# fenrisd

`fenrisd` is a file server reached over TCP. Each connection begins with an
ECDH key exchange on the P-256 curve. The shared secret is stretched with
HKDF-SHA256 into an AES-256-GCM key, and every request and response after that
is sent as one length-prefixed frame holding a fresh 12-byte IV and the sealed
message.

Requests the server answers:

| Request | What the server does |
| --- | --- |
| `PING` | replies `PONG` |
| `CREATE_FILE` | creates an empty file (fails if it exists) |
| `READ_FILE` | returns the file's contents |
| `WRITE_FILE` | writes the request data, creating the file if needed |
| `DELETE_FILE` | removes the file |
| `INFO_FILE` | returns name, size, kind and modification time |
| `CREATE_DIR` | creates a directory |
| `LIST_DIR` | lists a directory, sorted by name |
| `CHANGE_DIR` | moves the client's current directory |
| `DELETE_DIR` | removes a directory and everything in it |
| `TERMINATE` | ends the session |

Paths are taken relative to the client's current directory; a leading `/`
starts from the top of the served directory, and `..` and `.` work as usual.
Paths that would lead outside the served directory are refused with
`Invalid Path!`.

The server keeps an in-memory tree of the directories and files created
through it. Each directory a client stands in carries an access count, so a
directory that a client is inside cannot be deleted (`Directory is in use`).

## Installation

```
pip install .
```

For development, with the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
fenrisd --host 0.0.0.0 --port 5555
```

| Option | Default | Meaning |
| --- | --- | --- |
| `--host`, `-H` | `0.0.0.0` | Hostname or IP address to bind to |
| `--port`, `-p` | `5555` | Port to listen on |
| `--log-level` | `info` | One of trace, debug, info, warn, error, critical |
| `--log-file` | `fenris_server.log` | Path of the log file |
| `--no-console-log` | off | Turn off logging to the console |
| `--file-log` | off | Turn on logging to the file |

Files are served from the directory `fenris_server_dir`, created in the
working directory if it is missing. Press Ctrl+C to stop the server; it closes
every client connection before it exits. The command returns 1 if the options
are invalid, the log level is unknown or the address cannot be bound.

## Using it from Python

```python
from fenrisd.request_manager import ClientHandler
from fenrisd.server import Server

handler = ClientHandler(root_dir="served")
with Server("127.0.0.1", 0, client_handler=handler) as server:
    print("listening on", server.address)
    print("clients:", server.active_client_count())
```

`Server.start()` raises `RuntimeError` when no client handler is set and
`OSError` when the address cannot be bound. Any object with a
`handle_request(request, client_info)` method may serve as the handler.

The parts can also be used on their own:

- `fenrisd.protocol` defines `Request`, `Response`, `FileInfo`, the
  `RequestType` and `ResponseType` enums, and `serialize_request`,
  `deserialize_request`, `serialize_response` and `deserialize_response`.
  Bad input raises `ProtocolError`.
- `fenrisd.channel` has the key exchange (`server_handshake`,
  `client_handshake`), the AES-GCM helpers (`encrypt`, `decrypt`,
  `derive_key`, `generate_keypair`, `compute_shared_secret`) and the framed
  transfers (`send_frame`, `receive_frame`, `send_message`,
  `receive_message`). Failures raise `ChannelError`.
- `fenrisd.connection_manager.ConnectionManager` accepts clients and serves
  each one on its own thread.
- `fenrisd.client_info` holds `FileSystemTree`, `Node` and the per-client
  `ClientInfo`.
- `fenrisd.cache_manager.CacheManager` is a thread-safe LRU cache of file
  contents backed by the file system; it supports `len()` and `in`.

A minimal client, talking to a running server:

```python
import socket

from fenrisd.channel import client_handshake, receive_message, send_message
from fenrisd.protocol import (
    Request, RequestType, deserialize_response, serialize_request,
)

with socket.create_connection(("127.0.0.1", 5555)) as sock:
    key = client_handshake(sock)
    send_message(sock, key, serialize_request(Request(command=RequestType.PING)))
    print(deserialize_response(receive_message(sock, key)))
```

## What it does not do

- There is no client program; clients are written with `fenrisd.channel` and
  `fenrisd.protocol` as above.
- `APPEND_FILE` is defined in the protocol but the server answers it with
  `Unknown command`.
- The in-memory tree starts empty. Files and directories already present in
  the served directory when the server starts are not in the tree, so reading,
  entering or deleting them is refused until they are created through the
  server. Listing a directory reads the disk and does show them.
- `CacheManager` is not used by the server's request handling.