"""
MemeHub - a community meme board.

Memes are uploaded with a title and tags, searched and paged, edited by the
community until an admin locks them, and moderated by admins.
"""

__version__ = "0.1.0"
