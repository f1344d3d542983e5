"""Command line tool for the csi-snapshot-operator."""
