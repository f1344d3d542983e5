"""Run the csi-snapshot-operator command line tool."""

from snapshot_operator.tool.snapshot_operator import main

if __name__ == "__main__":
    main()
