"""
zkgov - protocol upgrade governance and emergency control

For direct module access, import from submodules:

    from zkgov.governance import ProtocolEnvironment, ThresholdMultisig
    from zkgov.crypto import PrivateKey
    from zkgov.config import load_config
"""

__version__ = "0.1.0"


# Lazy imports keep `import zkgov` from configuring logging
def __getattr__(name):
    if name == 'ProtocolEnvironment':
        from .governance.environment import ProtocolEnvironment
        return ProtocolEnvironment
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'zkgov' has no attribute {name!r}")

__all__ = ['ProtocolEnvironment', 'load_config', '__version__']
