from .user import User, Role  # noqa: F401
from .submission import UserFormResponse, VisitorSubmission  # noqa: F401
