from feedrank.models.interaction import Like
from feedrank.models.post import Post
from feedrank.models.social import Follow, User

__all__ = [
    "Post",
    "Like",
    "Follow",
    "User",
]
