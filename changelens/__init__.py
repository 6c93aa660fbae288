"""changelens: business-logic change auditing for git repositories."""

__version__ = "0.3.0"
