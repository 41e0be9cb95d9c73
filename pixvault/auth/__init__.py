"""Privilege gate consulted before writes, deletes and trash reads."""

from pixvault.auth.gate import AccessGate, AdminTokenGate, StaticGate, issue_admin_token, require_privileged

__all__ = ["AccessGate", "AdminTokenGate", "StaticGate", "issue_admin_token", "require_privileged"]
