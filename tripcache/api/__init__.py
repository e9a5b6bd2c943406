from tripcache.api.debug_server import DebugServer, create_debug_server

__all__ = ["DebugServer", "create_debug_server"]
