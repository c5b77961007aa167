"""
Utility modules for file handling, resource checks and progress output.
"""
