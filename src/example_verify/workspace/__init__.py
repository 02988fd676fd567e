"""Workspace assembly: template download, manifest injection, and example linking.

Provides provision_workspace for populating a scratch directory from the
upstream template, Manifest / inject_dependencies for wiring the library in,
and link_examples / ExampleSet for attaching the library's own examples.
"""
