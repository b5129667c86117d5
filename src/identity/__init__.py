from .bootstrap import (
    SessionBootstrap,
    SignInIdentity,
    SignInResult,
    assigned_classes,
    build_new_profile,
    reconcile_profile,
)

__all__ = [
    "SessionBootstrap",
    "SignInIdentity",
    "SignInResult",
    "assigned_classes",
    "build_new_profile",
    "reconcile_profile",
]
