"""Filesystem side of the gateway: directory creation, deletion and upload commits."""
