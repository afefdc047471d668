"""
=============================================================================
EXAMPLE: SERVER-SENT EVENTS OVER A CHUNKED STREAM
=============================================================================

A STREAM handler that sets its own status and headers, flushes them
explicitly, then emits one chunk every 100 ms:

    $ python examples/stream_events.py
    $ curl -N http://localhost:8080/

    HTTP/1.0 200 OK
    content-type: text/event-stream; charset=utf-8
    transfer-encoding: chunked

    data: 💩 0
    data: 💩 1
    ...

Each ChunkedWriter.write() is its own frame on the wire, so the client
sees every event as soon as it is written.

=============================================================================
"""

import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from embedhttp import ChunkedWriter, HTTPServer, ServerConfig


server = HTTPServer(ServerConfig.from_env())


@server.get("/")
def events(writer, request):
    writer.status = 200
    writer.set_header("content-type", "text/event-stream; charset=utf-8")
    writer.set_header("transfer-encoding", "chunked")
    writer.write_headers()

    stream = ChunkedWriter(writer)
    for n in range(100):
        stream.write(f"data: \U0001F4A9 {n}\n\n")
        time.sleep(0.1)
    stream.end()


@server.get("/hello")
def hello(request):
    return "hello"


if __name__ == "__main__":
    server.run()
