"""
Command line interface for kvfs.
"""
