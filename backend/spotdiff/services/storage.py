from typing import Optional

from spotdiff import db
from spotdiff.models import StoredValue
from spotdiff.services.engine.persistence import StorageError


class DatabaseStore:
    """Key/value store on the ``stored_value`` table. Needs an app context."""

    def get(self, key: str) -> Optional[str]:
        try:
            row = db.session.get(StoredValue, key)
        except Exception as exc:
            db.session.rollback()
            raise StorageError(str(exc)) from exc
        return row.value if row else None

    def set(self, key: str, value: str) -> None:
        try:
            row = db.session.get(StoredValue, key)
            if row is None:
                row = StoredValue(key=key, value=value)
            else:
                row.value = value
            db.session.add(row)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            raise StorageError(str(exc)) from exc

    def remove(self, key: str) -> None:
        try:
            StoredValue.query.filter_by(key=key).delete()
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            raise StorageError(str(exc)) from exc
