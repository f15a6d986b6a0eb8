"""
Courier Assist Adapters

Infrastructure collaborators that sit outside the core.
"""
