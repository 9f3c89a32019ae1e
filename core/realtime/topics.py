"""
Topic naming and access rules.

Topic families:
    user:<id>                 personal feed (owner only)
    role:<role>               role feed (authenticated holders of the role)
    location:<city>:<state>   public
    make:<make>               public
    bodyType:<type>           public
    public                    the global feed every connection joins
"""
from typing import Optional

from core.models.user import Identity


PUBLIC_TOPIC = "public"

USER_PREFIX = "user:"
ROLE_PREFIX = "role:"
LOCATION_PREFIX = "location:"
MAKE_PREFIX = "make:"
BODY_TYPE_PREFIX = "bodyType:"

PUBLIC_PREFIXES = (LOCATION_PREFIX, MAKE_PREFIX, BODY_TYPE_PREFIX)


def _norm(value: str) -> str:
    return value.strip().lower()


def user_topic(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def role_topic(role: str) -> str:
    return f"{ROLE_PREFIX}{_norm(role)}"


def location_topic(city: str, state: str) -> str:
    return f"{LOCATION_PREFIX}{_norm(city)}:{_norm(state)}"


def make_topic(make: str) -> str:
    return f"{MAKE_PREFIX}{_norm(make)}"


def body_type_topic(body_type: str) -> str:
    return f"{BODY_TYPE_PREFIX}{_norm(body_type)}"


def is_public(topic: str) -> bool:
    if topic == PUBLIC_TOPIC:
        return True
    return topic.startswith(PUBLIC_PREFIXES) and len(topic.split(":", 1)[1]) > 0


def can_join(identity: Optional[Identity], topic: str) -> bool:
    """
    Whether a connection with `identity` may join `topic`.

    Anonymous connections may join public families only. A personal topic
    is joinable only by its owner, a role topic only by holders of the role.
    """
    if is_public(topic):
        return True
    if identity is None:
        return False
    if topic.startswith(USER_PREFIX):
        return topic == user_topic(identity.user_id)
    if topic.startswith(ROLE_PREFIX):
        return topic == role_topic(identity.role)
    return False
