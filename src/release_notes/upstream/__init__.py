"""Clients for the release-hosting services the notes are fetched from.

Each client returns upstream release metadata as a RawRelease and reports
failures with the exceptions in release_notes.errors.
"""
