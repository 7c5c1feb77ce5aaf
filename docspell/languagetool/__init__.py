"""
LanguageTool Integration for DocSpell
=====================================
Grammar checking of documentation sentences with 3000+ rules.

Features:
- Grammar and style checking
- Rule-based corrections
- Local server, remote server or public API

Requires: pip install language-tool-python
Note: First local run downloads the LanguageTool distribution (~200MB)
"""

import threading

__version__ = "1.0.0"

# Lazy imports - only load when accessed
_clients = {}
_clients_lock = threading.Lock()


def get_client(config=None):
    """Get the shared LanguageToolClient for a configuration (lazy loaded)."""
    from .client import LanguageToolClient
    from ..config import LanguageToolConfig
    config = config or LanguageToolConfig()
    key = (config.language, config.remote_server, config.public_api,
           tuple(sorted(config.disabled_rules)), config.max_concurrent_requests)
    with _clients_lock:
        client = _clients.get(key)
        if client is None:
            client = LanguageToolClient(config)
            _clients[key] = client
    return client


def close_clients():
    """Shut down every LanguageTool server started by this process."""
    with _clients_lock:
        for client in _clients.values():
            client.close()
        _clients.clear()


def is_available() -> bool:
    """Check if language-tool-python is installed."""
    try:
        import language_tool_python  # noqa: F401
        return True
    except ImportError:
        return False


def get_status() -> dict:
    """Get LanguageTool integration status."""
    if not is_available():
        return {
            'available': False,
            'error': "language-tool-python not installed",
            'clients': [],
        }
    with _clients_lock:
        clients = [client.get_status() for client in _clients.values()]
    return {'available': True, 'error': None, 'clients': clients}


# Checker class - imported on demand
def get_checker():
    """Get the LanguageToolBackend class."""
    from .checker import LanguageToolBackend
    return LanguageToolBackend
