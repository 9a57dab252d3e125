from . import auth, documents, print_data, tasks, ws

__all__ = ["auth", "documents", "print_data", "tasks", "ws"]
