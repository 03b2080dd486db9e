import enum

from sqlalchemy.dialects.postgresql import ENUM as PgEnum


class MediaType(str, enum.Enum):
    NONE = "none"
    IMAGE = "image"
    VIDEO = "video"
    GIF = "gif"


class PostVisibility(str, enum.Enum):
    PUBLIC = "public"
    FOLLOWERS_ONLY = "followers_only"
    PRIVATE = "private"


# Types are owned by the content service schema; never created from here.
# NONE is never stored: a post without media has a NULL media_type.
media_type_enum = PgEnum(
    MediaType,
    name="media_type",
    create_type=False,
    values_callable=lambda e: [m.value for m in e],
)
post_visibility_enum = PgEnum(
    PostVisibility,
    name="post_visibility",
    create_type=False,
    values_callable=lambda e: [m.value for m in e],
)
