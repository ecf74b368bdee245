"""
Adapters - browse collaborators and filesystem helpers.
"""
