from pydantic import BaseModel


def list_response(items: list, limit: int, offset: int) -> dict:
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


class ListResponseMixin:
    @classmethod
    def list_response(cls, db, *args, read_schema: type[BaseModel] | None = None, **kwargs):
        """Wrap ``cls.list`` in a paging envelope.

        ``limit`` and ``offset`` come either as keywords or as the last two
        positional arguments. With ``read_schema`` the rows are serialized
        through it.
        """
        if "limit" in kwargs and "offset" in kwargs:
            limit = kwargs["limit"]
            offset = kwargs["offset"]
            items = cls.list(db, *args, **kwargs)
        else:
            if len(args) < 2:
                raise ValueError("limit and offset are required for list responses")
            *list_args, limit, offset = args
            items = cls.list(db, *list_args, limit=limit, offset=offset, **kwargs)
        if read_schema is not None:
            items = [read_schema.model_validate(item).model_dump(mode="json") for item in items]
        return list_response(items, limit, offset)
