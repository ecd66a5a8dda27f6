class ListResponseMixin:
    """Adds ``list_response`` wrapping ``list`` results in the list envelope.

    The ``limit`` and ``offset`` arguments are always the last two positional
    arguments of ``list``.
    """

    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict:
        items = cls.list(db, *args, **kwargs)
        if "limit" in kwargs:
            limit, offset = kwargs["limit"], kwargs.get("offset", 0)
        else:
            limit, offset = args[-2], args[-1]
        return {
            "items": items,
            "count": len(items),
            "limit": limit,
            "offset": offset,
        }
