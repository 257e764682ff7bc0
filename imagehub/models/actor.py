from collections import namedtuple

from imagehub.errors import InvalidActor

UPLOADER_TYPES = ("ADMIN", "SUPPLIER_LOCAL", "SUPPLIER_INTERNATIONAL", "MARKETER")


class Actor(namedtuple("Actor", ["id", "display_name", "uploader_type"])):
    """Opaque identity of whoever triggers an action. Never authenticated here."""

    __slots__ = ()

    @classmethod
    def create(cls, actor_id, display_name="", uploader_type="ADMIN"):
        actor_id = str(actor_id or "").strip()
        uploader_type = str(uploader_type or "").strip().upper()
        if not actor_id:
            raise InvalidActor("Actor id is required")
        if uploader_type not in UPLOADER_TYPES:
            raise InvalidActor(f"Unknown uploader type: {uploader_type or '(empty)'}")
        return cls(actor_id, (display_name or actor_id).strip(), uploader_type)

    @property
    def is_admin(self):
        return self.uploader_type == "ADMIN"
