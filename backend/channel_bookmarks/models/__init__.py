"""ORM Models — SQLAlchemy declarative models.

Invariants:
    - All models inherit from Base (db/base.py)
    - ChannelBookmark rows are scoped by channel_id; the channel itself lives upstream

Design Decisions:
    - All models imported here so Base.metadata is complete before create_all/autogenerate
"""

from channel_bookmarks.models.channel_bookmark import ChannelBookmark  # noqa: F401
