# sslnet

Building blocks for serving HTTP over plain TCP or TLS with asyncio:

- TLS contexts built from an INI certificate configuration,
- node ids taken from the public key of X.509 certificates,
- a time-window rate limiter,
- host/port endpoints that order and compare by their text form,
- an HTTP/1.1 request reader and response writer for one connection,
- an ordered queue for pipelined responses.

## Installation

```
pip install sslnet
```

To run the test suite:

```
pip install "sslnet[test]"
pytest
```

## Modules

- `sslnet.ratelimiter`: the `RateLimiter` interface and `TimeWindowRateLimiter`.
- `sslnet.endpoint`: `NodeIPEndpoint`.
- `sslnet.config`: `ContextConfig`, `CertConfig`, `SMCertConfig` and
  `ContextConfigError`.
- `sslnet.nodeinfo`: `certificate_pub_hex`, `cert_file_pub_hex` and
  `peer_node_id`.
- `sslnet.builder`: `ContextBuilder` and `ContextBuildError`.
- `sslnet.httpqueue`: `ResponseQueue`.
- `sslnet.httpstream`: `HttpStream`, `HttpRequest`, `HttpResponse` and
  `PARSER_BODY_LIMITATION`.

## Rate limiting

`TimeWindowRateLimiter(max_permits_size, time_window_ms=1000,
allow_exceed_max_permit_size=False)` grants up to `max_permits_size` permits in
each time window. The budget is refilled when a window has passed.

```python
from sslnet.ratelimiter import TimeWindowRateLimiter

limiter = TimeWindowRateLimiter(100, 1000, False)
if limiter.try_acquire(10):   # never blocks
    ...
limiter.acquire(10)           # sleeps until the window has room
limiter.rollback(10)          # gives permits back, capped at the maximum
```

A request for more permits than the maximum returns `False` straight away, or
`True` when `allow_exceed_max_permit_size` is set. The properties
`max_permits_size`, `current_permits_size`, `time_window_ms` and
`allow_exceed_max_permit_size` show the state.

## Endpoints

```python
from sslnet.endpoint import NodeIPEndpoint

a = NodeIPEndpoint("127.0.0.1", 30300)
b = NodeIPEndpoint.from_address("::1", 30300)   # ipv6 is True
str(a)                                          # "127.0.0.1:30300"
```

`from_address` raises `ValueError` if the text is not an IP address. Endpoints
compare, sort and hash by the host text followed by the port number.

## Certificate configuration

```ini
[common]
ssl_type = ssl

[cert]
ca_path = ./conf
ca_cert = ca.crt
node_cert = node.crt
node_key = node.key
```

Missing keys fall back to `ssl`, `./`, `ca.crt`, `node.crt` and `node.key`.
With `ssl_type = sm_ssl` the keys `sm_ca_cert`, `sm_node_cert`, `sm_node_key`,
`sm_ennode_cert` and `sm_ennode_key` are read instead (defaults `sm_ca.crt`,
`sm_node.crt`, `sm_node.key`, `sm_ennode.crt`, `sm_ennode.key`). Each file name
is joined to `ca_path` with `/`.

```python
from sslnet.config import ContextConfig

config = ContextConfig()
config.init_config("config.ini")
config.ssl_type            # "ssl"
config.cert_config.ca_cert # "./conf/ca.crt"
```

`init_config` raises `ContextConfigError` when the file cannot be read or
parsed, or when a configured certificate file does not exist. Setting
`is_cert_path = False` on a `ContextConfig` makes the certificate fields hold
the PEM contents themselves instead of file paths.

## TLS contexts

```python
from sslnet.builder import ContextBuilder

server_ctx = ContextBuilder().build_ssl_context(True, "config.ini")
client_ctx = ContextBuilder().build_ssl_context(False, config)
```

`build_ssl_context(server, config)` takes a `ContextConfig` or the path of an
INI file and returns an `ssl.SSLContext`. Every context requires a peer
certificate signed by the configured CA; host names are not checked. For `ssl`
the context is limited to TLS 1.2. For `sm_ssl` the signing certificate and key
serve the TLS connection, and the encryption certificate and key are checked to
parse and to match each other. Failures raise `ContextBuildError`.

`ContextBuilder.read_file_content(path)` returns a file's bytes, or `b""` if it
cannot be read.

## Node ids

A node id is the hex of the public key bits of a certificate.

```python
from sslnet.nodeinfo import cert_file_pub_hex, certificate_pub_hex, peer_node_id

node_id = cert_file_pub_hex("conf/node.crt")
node_id = certificate_pub_hex(pem_or_der_bytes)
```

`peer_node_id(ssl_object)` reads the peer certificate of an SSL socket or
`ssl.SSLObject` and returns its node id, or `None` when there is no usable
certificate. The other two raise `ValueError` for missing or invalid input.

## Reading requests and writing responses

`HttpStream(reader, writer, module_name)` wraps an asyncio stream pair.
`read_request()` returns the next `HttpRequest`, or `None` once the peer has
nothing more to send; a malformed request, or a body larger than
`PARSER_BODY_LIMITATION` (100 MiB), raises `ValueError`. `write_response()`
writes an `HttpResponse` and returns the number of bytes written.

```python
import asyncio
from sslnet.httpstream import HttpResponse, HttpStream
from sslnet.nodeinfo import peer_node_id

async def handle(reader, writer):
    stream = HttpStream(reader, writer, "rpc")
    ssl_object = writer.get_extra_info("ssl_object")
    node_id = peer_node_id(ssl_object) if ssl_object else None
    try:
        while (request := await stream.read_request()) is not None:
            response = HttpResponse(version=request.version, body=request.body)
            response.set_header("Content-Type", "application/json")
            response.keep_alive = request.keep_alive
            response.prepare_payload()
            await stream.write_response(response)
            if response.need_eof:
                break
    finally:
        stream.close()

async def main():
    server = await asyncio.start_server(handle, "127.0.0.1", 8545)
    async with server:
        await server.serve_forever()

asyncio.run(main())
```

Pass `ssl=` a context from `ContextBuilder` to `asyncio.start_server` to serve
over TLS. `HttpRequest.is_upgrade()` tells a WebSocket upgrade request apart;
`local_endpoint()` and `remote_endpoint()` give `ip:port` strings.

## Ordered responses

`ResponseQueue(limit=16)` hands responses to its `sender` callable one at a
time, in the order they were queued. `enqueue(message)` sends at once if
nothing else is in flight; `on_write()` drops the finished head, sends the next
and returns `True` if the queue had been full, meaning reading may resume.
`is_full()` tells whether `limit` responses are waiting.

## What this package does not do

There is no ready-made server object that listens, accepts connections and
dispatches requests to a handler, and no per-connection session that ties the
stream and the response queue together: an application writes that loop
itself, as in the example above. There are no timers, no throughput reporter,
no message framing and no WebSocket handling beyond recognising an upgrade
request. There is no command-line program.