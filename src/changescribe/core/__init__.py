"""
Core primitives shared by the pipeline and the CLI: typed errors and
configuration.
"""
