"""Local port probing."""

import contextlib
import socket


def find_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently unused TCP port.

    The port is only known to be free at the moment of the probe. Another
    process can take it before the node binds, so a spawn on this port can
    still fail with "address in use".
    """
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind((host, 0))
        return int(s.getsockname()[1])
