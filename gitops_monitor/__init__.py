"""gitops-monitor: poll a Git repository and reconcile changed targets onto a cluster."""

__version__ = "0.1.0"
