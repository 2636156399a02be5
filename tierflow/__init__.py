from .stack import Stack, Tier, default_stack, load_stack
from .errors import TierflowError, StackConfigError, ManifestError, CommandError

__version__ = "0.1.0"

__all__ = [
    "Stack", "Tier", "default_stack", "load_stack",
    "TierflowError", "StackConfigError", "ManifestError", "CommandError",
]
