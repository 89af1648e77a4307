class ListResponseMixin:
    """Wraps a service's ``list`` result in the ``ListResponse`` envelope."""

    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict:
        items = cls.list(db, *args, **kwargs)
        return {"items": items, "count": len(items), "limit": kwargs.get("limit")}
