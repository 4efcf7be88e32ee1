from sqlalchemy import event

from errors import AppendOnlyViolation


def append_only(model):
    """
    Class decorator: reject ORM updates and deletes of audit rows.

    Bulk ``Query.update()``/``Query.delete()`` bypass mapper events; nothing in
    this codebase issues those against audit tables.
    """

    @event.listens_for(model, "before_update")
    def _reject_update(mapper, connection, target):
        raise AppendOnlyViolation(f"{model.__tablename__} rows cannot be updated")

    @event.listens_for(model, "before_delete")
    def _reject_delete(mapper, connection, target):
        raise AppendOnlyViolation(f"{model.__tablename__} rows cannot be deleted")

    return model
