"""
Generic helpers shared by the command line tools.

Includes logging setup and file renaming.
"""
