"""
Test helpers package for the service exporter tests.

Submodules:
    - fakes: Recording cluster and tunnel collaborators
"""
