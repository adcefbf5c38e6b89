"""SessionReconciler module."""

from .reconciler import ISessionReconciler, SessionReconciler

__all__ = ["ISessionReconciler", "SessionReconciler"]
