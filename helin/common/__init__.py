"""Shared helpers and synchronisation primitives."""