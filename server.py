# standard library imports
import sys
import math
import json
import select
import threading
import traceback
import multiprocessing
from collections import namedtuple

# local imports
import config
import logutil
import msocket
from blocks import STONE, UnknownBlockError, check_block_id
from chunk_cache import ChunkCache, key_of, tag_of
from mapgen import GenerationParams

ONE_YEAR = 31536000
CACHE_CONTROL = 'public, max-age=%d, s-maxage=%d, immutable' % (
    getattr(config, 'CACHE_MAX_AGE', ONE_YEAR), getattr(config, 'CACHE_MAX_AGE', ONE_YEAR))

STATUS_OK = 200
STATUS_NOT_MODIFIED = 304
STATUS_ERROR = 500

ChunkResponse = namedtuple('ChunkResponse', ['status', 'headers', 'body'])


def _int_param(query, name, default):
    raw = query.get(name)
    if raw is None:
        return default
    # Integer fields behave like Number(value)|0: garbage and infinities read as 0.
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value):
        return 0
    return int(value)


def _float_param(query, name, default):
    raw = query.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"parameter {name}={raw!r} is not a number")
    if not math.isfinite(value):
        raise ValueError(f"parameter {name}={raw!r} is not finite")
    return value


def parse_params(query):
    """ Build GenerationParams from a request query (mapping of name -> string).

    Missing names take the defaults below; size is clamped to [4, 128].
    """
    size = _int_param(query, 'size', config.DEFAULT_REQUEST_SIZE)
    seed = query.get('seed')
    if seed is None:
        seed = config.DEFAULT_SEED
    base = check_block_id(_int_param(query, 'base', STONE))
    cx = _int_param(query, 'cx', 0)
    cy = _int_param(query, 'cy', 0)
    cz = _int_param(query, 'cz', 0)
    return GenerationParams(
        size=size,
        world_seed=str(seed),
        base_block=base,
        coordinate=(cx, cy, cz),
        surface_scale=_float_param(query, 'surfaceScale', config.SURFACE_SCALE),
        caves_scale=_float_param(query, 'cavesScale', config.CAVES_SCALE),
        caves_threshold=_float_param(query, 'cavesThreshold', config.CAVES_THRESHOLD),
        grass_depth=_int_param(query, 'grassDepth', config.GRASS_DEPTH),
        dirt_depth=_int_param(query, 'dirtDepth', config.DIRT_DEPTH),
    )


def error_response(message):
    body = json.dumps({'error': message}).encode('utf-8')
    return ChunkResponse(STATUS_ERROR, {'Content-Type': 'application/json'}, body)


class ChunkRequestHandler(object):
    '''
    Turns chunk requests into responses

    A request carrying the tag previously returned for the same parameters gets
    an empty 304 without regenerating anything.
    '''
    def __init__(self, cache=None):
        self.cache = cache if cache is not None else ChunkCache()

    def handle(self, query, if_none_match=None):
        try:
            params = parse_params(query)
            key = key_of(params)
            etag = tag_of(key, params.size)
            headers = {'Cache-Control': CACHE_CONTROL, 'ETag': etag}
            if if_none_match and if_none_match == etag:
                logutil.log("SERVER", f"not modified {key}", level="DEBUG")
                return ChunkResponse(STATUS_NOT_MODIFIED, headers, b'')
            entry = self.cache.get_or_generate(params)
            headers['Content-Type'] = 'application/octet-stream'
            headers['X-Chunk-Size'] = str(params.size)
            logutil.log("SERVER", f"chunk {key} {len(entry.payload)} bytes", level="DEBUG")
            return ChunkResponse(STATUS_OK, headers, entry.payload)
        except (ValueError, UnknownBlockError) as ex:
            logutil.log("SERVER", f"bad chunk request {dict(query)!r}: {ex}", level="WARN")
            return error_response(str(ex))


class ChunkServer(object):
    '''
    Chunk generation server

    Serves ('get_chunk', [query, if_none_match]) messages with
    ('chunk_response', [status, headers, body]) replies. A client may send any
    number of requests on one connection and ends it with 'quit' or by closing.
    '''
    def __init__(self, ip=None, port=None, handler=None):
        if ip is None:
            ip = config.SERVER_IP or 'localhost'
        if port is None:
            port = config.SERVER_PORT
        self.listener = msocket.Listener(ip, port)
        self.address = self.listener.address
        self.handler = handler if handler is not None else ChunkRequestHandler()
        self.connections = []
        self._stop = threading.Event()

    def stop(self):
        self._stop.set()

    def serve(self, poll_interval=0.5):
        logutil.log("SERVER", f"serving chunks at {self.address[0]}:{self.address[1]}")
        try:
            while not self._stop.is_set():
                try:
                    r, w, x = select.select([self.listener] + self.connections, [], [], poll_interval)
                except KeyboardInterrupt:
                    logutil.log("SERVER", "received keyboard interrupt", level="WARN")
                    break
                for conn in list(self.connections):
                    if conn in r:
                        self._serve_connection(conn)
                if self.listener in r:
                    self._accept()
        finally:
            for conn in self.connections:
                conn.close()
            self.connections = []
            self.listener.close()
            logutil.log("SERVER", "stopped")

    def _accept(self):
        try:
            conn = self.listener.accept()
        except (OSError, EOFError, multiprocessing.AuthenticationError) as ex:
            logutil.log("SERVER", f"rejected connection: {ex!r}", level="WARN")
            return
        self.connections.append(conn)
        logutil.log("SERVER", f"accepted connection ({len(self.connections)} open)", level="DEBUG")

    def _drop(self, conn):
        conn.close()
        if conn in self.connections:
            self.connections.remove(conn)

    def _serve_connection(self, conn):
        try:
            msg, data = conn.recv()
        except (EOFError, OSError):
            self._drop(conn)
            return
        except Exception:
            logutil.log("SERVER", f"unreadable message:\n{traceback.format_exc()}", level="WARN")
            self._drop(conn)
            return
        if msg == 'quit':
            self._drop(conn)
            return
        if msg != 'get_chunk':
            logutil.log("SERVER", f"unknown message {msg!r}", level="WARN")
            response = error_response(f"unknown message {msg!r}")
        else:
            try:
                query, if_none_match = data
                response = self.handler.handle(query, if_none_match)
            except Exception as ex:
                logutil.log("SERVER", f"request failed:\n{traceback.format_exc()}", level="ERROR")
                response = error_response(str(ex) or type(ex).__name__)
        try:
            conn.send(('chunk_response', list(response)))
        except (EOFError, OSError):
            self._drop(conn)


def start_server(ip, port):
    server = ChunkServer(ip, port)
    server.serve()


if __name__ == '__main__':
    ip = 'localhost'
    port = config.SERVER_PORT
    if len(sys.argv)>1:
        if sys.argv[1] == 'LAN':
            ip = msocket.get_network_ip()
        elif ':' in sys.argv[1]:
            ip, port = sys.argv[1].split(':', 1)
            try:
                port = int(port)
            except ValueError:
                port = config.SERVER_PORT
        else:
            ip = sys.argv[1]
    start_server(ip, port)
