from .interactive_shell import InteractiveShell, parse_assignments

__all__ = ["InteractiveShell", "parse_assignments"]
