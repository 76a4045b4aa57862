'''
msocket.py -- authenticated message connections between chunk clients and the chunk server

Messages are (msg, data) pairs pickled by multiprocessing.connection. Both ends
must share config.AUTHKEY.
'''
import multiprocessing.connection

import config


class Listener(multiprocessing.connection.Listener):
    def __init__(self, ip, port):
        multiprocessing.connection.Listener.__init__(self, address = (ip, port), authkey = config.AUTHKEY)

    def fileno(self):
        return self._listener._socket.fileno()


def Client(ip, port):
    return multiprocessing.connection.Client(address = (ip, port), authkey = config.AUTHKEY)


def get_network_ip():
    import socket
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        s.connect(('<broadcast>', 0))
        return s.getsockname()[0]
    finally:
        s.close()
