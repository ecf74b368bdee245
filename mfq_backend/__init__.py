"""
Media folder queue backend: hierarchical scan-and-sample engine for slideshows.
"""
