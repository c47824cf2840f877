"""helm-reconcile is a command line program that calls the helm-reconcile library.

Example usage:
  python -m helm_reconcile plan --config helm-project.yaml
"""

from helm_reconcile.tool.helm_reconcile import main


if __name__ == "__main__":
    main()
