from .server import RunStarter, Server

__all__ = ["RunStarter", "Server"]
