"""Tests for the csi-snapshot-operator command line tool."""
