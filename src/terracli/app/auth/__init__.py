"""Login state operations."""

from .service import AuthOperations, load_credential_file

__all__ = ["AuthOperations", "load_credential_file"]
