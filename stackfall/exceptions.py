# Stackfall - Falling-block rules engine
# exceptions.py - Custom exceptions for the rules engine

class QueueUnderflow(Exception):
    """Raised when the piece queue is asked for a piece it does not have."""
    pass

class InvalidBitmapException(ValueError):
    """Raised when a flat bitmap does not match the grid dimensions."""
    pass

class InvalidConfigException(ValueError):
    """Raised for board or timing settings the engine cannot run with."""
    pass
