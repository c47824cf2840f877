"""Command line actions for helm-reconcile."""
